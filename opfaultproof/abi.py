"""Encoding and decoding of static Ethereum contract ABI values."""

from __future__ import annotations

from Crypto.Hash import keccak as _keccak

WORD_SIZE = 32
UINT256_MAX = (1 << 256) - 1


def keccak256(data: bytes) -> bytes:
    """Return the Keccak-256 digest of ``data``."""
    digest = _keccak.new(digest_bits=256)
    digest.update(bytes(data))
    return digest.digest()


def _split_signature(signature: str) -> tuple[str, list[str]]:
    name, sep, rest = signature.strip().partition("(")
    if not name or not sep or not rest.endswith(")"):
        raise ValueError(f"malformed function signature: {signature!r}")
    inner = rest[:-1].strip()
    types = [part.strip() for part in inner.split(",")] if inner else []
    if any(not kind for kind in types):
        raise ValueError(f"malformed function signature: {signature!r}")
    return name.strip(), ["uint256" if kind == "uint" else kind for kind in types]


def function_selector(signature: str) -> bytes:
    """Return the four-byte selector of a function signature."""
    name, types = _split_signature(signature)
    canonical = f"{name}({','.join(types)})"
    return keccak256(canonical.encode("ascii"))[:4]


def encode_uint(value: int) -> bytes:
    """Encode an unsigned integer as one 32-byte word."""
    if isinstance(value, bool):
        value = int(value)
    if not isinstance(value, int):
        raise TypeError(f"expected an integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"value {value} does not fit in uint256")
    return value.to_bytes(WORD_SIZE, "big")


def _hex_body(text: str) -> str:
    return text[2:] if text[:2] in ("0x", "0X") else text


def parse_address(text: str) -> str:
    """Validate a hex address and return it as lower-case ``0x``-prefixed text."""
    if not isinstance(text, str):
        raise TypeError("address must be a string")
    body = _hex_body(text.strip())
    if len(body) != 40 or any(ch not in "0123456789abcdefABCDEF" for ch in body):
        raise ValueError(f"invalid address: {text!r}")
    return "0x" + body.lower()


def _address_bytes(address: str | bytes) -> bytes:
    if isinstance(address, (bytes, bytearray)):
        if len(address) != 20:
            raise ValueError("address must be 20 bytes long")
        return bytes(address)
    return bytes.fromhex(parse_address(address)[2:])


def encode_address(address: str | bytes) -> bytes:
    """Encode an address as one left-padded 32-byte word."""
    return bytes(12) + _address_bytes(address)


def encode_bytes32(value: str | bytes) -> bytes:
    """Encode a 32-byte value given as bytes or hex text."""
    if isinstance(value, str):
        try:
            value = bytes.fromhex(_hex_body(value))
        except ValueError as exc:
            raise ValueError(f"invalid hex value: {value!r}") from exc
    if not isinstance(value, (bytes, bytearray)):
        raise TypeError("bytes32 value must be bytes or hex text")
    if len(value) != WORD_SIZE:
        raise ValueError(f"bytes32 value must be 32 bytes, got {len(value)}")
    return bytes(value)


def _encode_typed(kind: str, value: object) -> bytes:
    if kind == "address":
        return encode_address(value)  # type: ignore[arg-type]
    if kind == "bytes32":
        return encode_bytes32(value)  # type: ignore[arg-type]
    if kind == "bool":
        if not isinstance(value, bool):
            raise TypeError("bool argument must be True or False")
        return encode_uint(int(value))
    if kind.startswith("uint"):
        digits = kind[4:]
        if not digits.isdigit() or int(digits) % 8 or not 8 <= int(digits) <= 256:
            raise ValueError(f"unsupported ABI type {kind!r}")
        encoded = encode_uint(value)  # type: ignore[arg-type]
        if int(value) >= 1 << int(digits):  # type: ignore[call-overload]
            raise ValueError(f"value {value} does not fit in {kind}")
        return encoded
    raise ValueError(f"unsupported ABI type {kind!r}")


def encode_call(signature: str, *args: object) -> bytes:
    """Build calldata for a function with static arguments."""
    _, types = _split_signature(signature)
    if len(types) != len(args):
        raise ValueError(f"{signature} takes {len(types)} arguments, got {len(args)}")
    encoded = b"".join(_encode_typed(kind, arg) for kind, arg in zip(types, args))
    return function_selector(signature) + encoded


def _word(data: bytes, index: int) -> bytes:
    if index < 0:
        raise ValueError("word index must not be negative")
    start = index * WORD_SIZE
    word = bytes(data[start:start + WORD_SIZE])
    if len(word) != WORD_SIZE:
        raise ValueError(f"return data too short for word {index}")
    return word


def decode_uint(data: bytes, index: int = 0) -> int:
    """Decode the unsigned integer held in word ``index``."""
    return int.from_bytes(_word(data, index), "big")


def decode_address(data: bytes, index: int = 0) -> str:
    """Decode the address held in word ``index``."""
    word = _word(data, index)
    if any(word[:12]):
        raise ValueError(f"word {index} does not hold an address")
    return "0x" + word[12:].hex()


def decode_bytes32(data: bytes, index: int = 0) -> bytes:
    """Return the raw 32 bytes of word ``index``."""
    return _word(data, index)