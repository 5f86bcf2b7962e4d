"""
MERIDIAN Phonetic: American Soundex

Phonetic codes for payee name tokens, used both as a blocking key and
as the phonetic-agreement signal in the composite duplicate score.
"""

import re


class AmericanSoundex:
    """
    Classic American Soundex encoder.

    Rules:
    - The first letter is kept
    - Vowels (and Y) separate repeated codes; H and W do not
    - Adjacent letters with the same code collapse, including the first

    Example:
        >>> encoder = AmericanSoundex()
        >>> encoder.encode("ROBERT")
        'R163'
        >>> encoder.encode("RUPERT")
        'R163'
        >>> encoder.encode("ASHCRAFT")
        'A261'
    """

    CONSONANT_CODES = {
        'B': '1', 'F': '1', 'P': '1', 'V': '1',
        'C': '2', 'G': '2', 'J': '2', 'K': '2', 'Q': '2', 'S': '2', 'X': '2', 'Z': '2',
        'D': '3', 'T': '3',
        'L': '4',
        'M': '5', 'N': '5',
        'R': '6',
    }

    SEPARATORS = set('AEIOUY')
    TRANSPARENT = set('HW')

    def __init__(self, code_length: int = 4):
        """
        Initialize encoder.

        Args:
            code_length: Length of output code (default 4)
        """
        self.code_length = code_length

    def encode(self, name: str) -> str:
        """
        Encode a single word.

        Args:
            name: Word to encode; non-letters are ignored

        Returns:
            Soundex code (e.g., 'R163'), or '' if there are no letters
        """
        if not name or not isinstance(name, str):
            return ''

        clean = re.sub(r'[^A-Z]', '', name.upper())
        if not clean:
            return ''

        first = clean[0]
        code = [first]
        prev_code = self.CONSONANT_CODES.get(first, '0')

        for char in clean[1:]:
            if char in self.TRANSPARENT:
                continue
            if char in self.SEPARATORS:
                prev_code = '0'
                continue

            char_code = self.CONSONANT_CODES.get(char)
            if char_code and char_code != prev_code:
                code.append(char_code)
            prev_code = char_code or '0'

            if len(code) >= self.code_length:
                break

        while len(code) < self.code_length:
            code.append('0')

        return ''.join(code[:self.code_length])

    def encode_tokens(self, name: str) -> list[str]:
        """Encode each whitespace-separated token."""
        return [self.encode(token) for token in name.upper().split() if token]
