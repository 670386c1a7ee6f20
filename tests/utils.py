import string

START_TIME = 1_700_000_000

BASE64URL_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits + "-_"


class FakeClock:
    """Unix-seconds clock that only moves when told to."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def tamper_signature(token: str, index: int = 0) -> str:
    """
    Flip the lowest bit of one signature character.

    For the last character that bit may fall in the base64url padding bits,
    which leaves the decoded signature bytes unchanged.
    """
    header, payload, signature = token.split(".")
    chars = list(signature)
    chars[index] = BASE64URL_ALPHABET[BASE64URL_ALPHABET.index(chars[index]) ^ 1]
    return f"{header}.{payload}.{''.join(chars)}"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
