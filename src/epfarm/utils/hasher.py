import hashlib


class Hasher:
    """
    Hasher provides static methods for generating SHA256 hashes.

    Methods
    -------
    hash_string(input_string: str) -> str
        Returns a SHA256 hash of the input string.
    hash_bytes(input_bytes: bytes) -> str
        Returns a SHA256 hash of the input bytes.
    """

    @staticmethod
    def hash_string(input_string: str) -> str:
        """Returns a SHA256 hash of the input string."""

        return hashlib.sha256(input_string.encode("utf-8")).hexdigest()

    @staticmethod
    def hash_bytes(input_bytes: bytes) -> str:
        """Returns a SHA256 hash of the input bytes."""

        return hashlib.sha256(input_bytes).hexdigest()


def hash(data: str | bytes, is_bytes: bool = False) -> str:
    """
    Hashes the given data using the Hasher utility.

    Parameters
    ----------
    data : str or bytes
        The data to be hashed. If `is_bytes` is True, this should be a bytes object;
        otherwise, it should be a string.
    is_bytes : bool, optional
        If True, treats `data` as bytes. Default is False.

    Returns
    -------
    str
        The hexadecimal SHA256 digest of the input data.
    """
    if is_bytes:
        return Hasher.hash_bytes(data)  # type: ignore
    return Hasher.hash_string(data)  # type: ignore
