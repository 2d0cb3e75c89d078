import random
import string

# Uppercase letters and digits minus the ones easily misread on a projector
CODE_ALPHABET = ''.join(c for c in string.ascii_uppercase + string.digits if c not in '0O1IL')


def generate_game_code(length=6, rng=random):
    """Generate a short game code. Uniqueness is the registry's job."""
    return ''.join(rng.choices(CODE_ALPHABET, k=length))
