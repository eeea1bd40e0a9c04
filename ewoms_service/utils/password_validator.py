import unicodedata


def check_password_strength(password: str) -> bool:
    """
    Require at least 8 characters including an uppercase letter, a lowercase
    letter, a digit and a punctuation or symbol character.
    """
    if len(password) < 8:
        return False

    has_upper = has_lower = has_number = has_special = False
    for char in password:
        if char.isupper():
            has_upper = True
        elif char.islower():
            has_lower = True
        elif char.isdigit():
            has_number = True
        elif unicodedata.category(char)[0] in ("P", "S"):
            has_special = True

    return has_upper and has_lower and has_number and has_special


def is_digit(value: str) -> bool:
    """True for a non-empty string of ASCII digits"""
    return bool(value) and value.isascii() and value.isdigit()
