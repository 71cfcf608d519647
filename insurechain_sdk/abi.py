"""
Minimal ABI codec for the insurance contract.

Only the handful of Solidity types the contract actually uses are
supported: ``uint<N>``, ``address``, ``bool``, ``string``, ``bytes`` and
``bytes<N>``, plus tuples of those when decoding return values.

Dynamic types (``string``, ``bytes``) use the standard head/tail layout:
the head carries a 32-byte offset and the tail carries a length word
followed by the right-padded data. Calldata produced here is therefore
accepted by any Solidity-compiled contract.
"""
import re
from decimal import Decimal
from typing import Any, List, Optional, Sequence, Tuple

from web3 import Web3

from .exceptions import EncodingError, DecodingError
from .models import EncodedCall, LogEntry

WORD_BYTES = 32
WORD_HEX = WORD_BYTES * 2

_SIGNATURE_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*\((.*)\)\s*$")
_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")
_UINT_RE = re.compile(r"^uint([0-9]*)$")
_BYTES_N_RE = re.compile(r"^bytes([0-9]+)$")


def keccak_hex(text: str) -> str:
    """
    Keccak-256 of a UTF-8 string.

    Args:
        text: Input string (usually a canonical signature)

    Returns:
        0x-prefixed 64-character hex digest
    """
    return Web3.to_hex(Web3.keccak(text=text))


def split_types(raw: str) -> List[str]:
    """Split a comma-separated type list, respecting nested tuple parentheses."""
    text = raw.strip()
    if not text:
        return []

    parts: List[str] = []
    depth = 0
    start = 0
    for idx, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise EncodingError(f"Unbalanced parentheses in type list: {raw}")
        elif ch == "," and depth == 0:
            parts.append(text[start:idx].strip())
            start = idx + 1
    if depth != 0:
        raise EncodingError(f"Unbalanced parentheses in type list: {raw}")
    parts.append(text[start:].strip())

    if any(not part for part in parts):
        raise EncodingError(f"Empty type in list: {raw}")
    return parts


def normalize_type(abi_type: str) -> str:
    """
    Canonicalize a type name the way Solidity hashes it.

    ``uint`` becomes ``uint256`` and tuples are normalized member by member.

    Raises:
        EncodingError: If the type is not supported by this codec
    """
    t = abi_type.strip()
    if t.startswith("(") and t.endswith(")"):
        return "(" + ",".join(normalize_type(member) for member in split_types(t[1:-1])) + ")"
    if t in ("address", "bool", "string", "bytes"):
        return t

    uint_match = _UINT_RE.match(t)
    if uint_match:
        bits = int(uint_match.group(1) or "256")
        if bits < 8 or bits > 256 or bits % 8:
            raise EncodingError(f"Invalid uint width: {t}", abi_type=t)
        return f"uint{bits}"

    bytes_match = _BYTES_N_RE.match(t)
    if bytes_match:
        size = int(bytes_match.group(1))
        if size < 1 or size > 32:
            raise EncodingError(f"Invalid fixed bytes size: {t}", abi_type=t)
        return t

    raise EncodingError(f"Unsupported ABI type: {abi_type}", abi_type=abi_type)


def parse_signature(signature: str) -> Tuple[str, List[str]]:
    """
    Split ``name(type1,type2)`` into its name and normalized types.

    Raises:
        EncodingError: If the signature is malformed
    """
    match = _SIGNATURE_RE.match(signature or "")
    if not match:
        raise EncodingError(f"Malformed function signature: {signature!r}")
    name, raw_types = match.groups()
    return name, [normalize_type(t) for t in split_types(raw_types)]


def canonical_signature(name: str, types: Sequence[str]) -> str:
    """Build the canonical ``name(t1,t2)`` string used for hashing."""
    return f"{name}({','.join(normalize_type(t) for t in types)})"


def selector_of(signature: str) -> str:
    """
    Function selector: first 4 bytes of keccak-256 of the canonical signature.

    Returns:
        0x-prefixed 8-character hex string
    """
    name, types = parse_signature(signature)
    return keccak_hex(canonical_signature(name, types))[:10]


def event_topic(signature: str) -> str:
    """Full keccak-256 of an event signature, i.e. its ``topics[0]``."""
    name, types = parse_signature(signature)
    return keccak_hex(canonical_signature(name, types))


def is_dynamic(abi_type: str) -> bool:
    if abi_type in ("string", "bytes"):
        return True
    if abi_type.startswith("("):
        return any(is_dynamic(member) for member in split_types(abi_type[1:-1]))
    return False


def _word(value: int) -> str:
    return format(value, "064x")


def _strip_hex(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def _as_uint(value: Any, abi_type: str) -> int:
    # bool is an int subclass; a float has already lost precision
    if isinstance(value, bool) or isinstance(value, float):
        raise EncodingError(f"{abi_type} value must be an integer, got {type(value).__name__}",
                            abi_type=abi_type, value=value)
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal) and value.is_finite() and value == value.to_integral_value():
        return int(value)
    if isinstance(value, str):
        raw = value.strip()
        try:
            if raw[:2] in ("0x", "0X"):
                return int(raw, 16)
            return int(raw, 10)
        except ValueError:
            raise EncodingError(f"Invalid integer literal for {abi_type}: {value!r}",
                                abi_type=abi_type, value=value)
    raise EncodingError(f"{abi_type} value must be an integer, got {type(value).__name__}",
                        abi_type=abi_type, value=value)


def encode_uint(value: Any, bits: int = 256) -> str:
    """
    Encode an unsigned integer as a single left-padded word.

    Raises:
        EncodingError: If the value is negative or wider than ``bits``
    """
    abi_type = f"uint{bits}"
    number = _as_uint(value, abi_type)
    if number < 0:
        raise EncodingError(f"{abi_type} cannot be negative: {number}", abi_type=abi_type, value=value)
    if number >= 1 << bits:
        raise EncodingError(f"Value does not fit in {abi_type}: {number}", abi_type=abi_type, value=value)
    return _word(number)


def encode_address(value: Any) -> str:
    """
    Encode a 20-byte address left-padded to one word.

    Raises:
        EncodingError: If the value is not 40 hex characters
    """
    if not isinstance(value, str):
        raise EncodingError("address must be a hex string", abi_type="address", value=value)
    raw = _strip_hex(value.strip())
    if len(raw) != 40 or not _HEX_RE.match(raw):
        raise EncodingError(f"Malformed address: {value!r}", abi_type="address", value=value)
    return raw.lower().rjust(WORD_HEX, "0")


def encode_bool(value: Any) -> str:
    if not isinstance(value, bool):
        raise EncodingError("bool value must be True or False", abi_type="bool", value=value)
    return _word(1 if value else 0)


def _encode_fixed_bytes(value: Any, abi_type: str, size: int) -> str:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value).hex()
    elif isinstance(value, str) and _HEX_RE.match(_strip_hex(value)):
        raw = _strip_hex(value).lower()
    else:
        raise EncodingError(f"{abi_type} value must be bytes or hex", abi_type=abi_type, value=value)
    if len(raw) != size * 2:
        raise EncodingError(f"{abi_type} must be exactly {size} bytes", abi_type=abi_type, value=value)
    return raw.ljust(WORD_HEX, "0")


def _encode_dynamic_bytes(data: bytes) -> List[str]:
    """Length word followed by the data right-padded to a word boundary."""
    words = [_word(len(data))]
    padded = data.hex()
    if len(padded) % WORD_HEX:
        padded = padded.ljust(len(padded) + WORD_HEX - len(padded) % WORD_HEX, "0")
    words.extend(padded[i:i + WORD_HEX] for i in range(0, len(padded), WORD_HEX))
    return words


def encode_string(value: Any) -> List[str]:
    """
    Encode the tail section of a ``string`` argument.

    Returns:
        Words for the length prefix and the UTF-8 payload
    """
    if not isinstance(value, str):
        raise EncodingError("string value must be str", abi_type="string", value=value)
    return _encode_dynamic_bytes(value.encode("utf-8"))


def encode_static(abi_type: str, value: Any) -> str:
    """Encode a single static (one-word) value."""
    if abi_type == "address":
        return encode_address(value)
    if abi_type == "bool":
        return encode_bool(value)
    uint_match = _UINT_RE.match(abi_type)
    if uint_match:
        return encode_uint(value, int(uint_match.group(1) or "256"))
    bytes_match = _BYTES_N_RE.match(abi_type)
    if bytes_match:
        return _encode_fixed_bytes(value, abi_type, int(bytes_match.group(1)))
    raise EncodingError(f"Unsupported ABI type for encoding: {abi_type}", abi_type=abi_type, value=value)


def encode_arguments(types: Sequence[str], values: Sequence[Any]) -> List[str]:
    """
    ABI-encode a list of arguments as 64-hex-character words.

    Args:
        types: Normalized ABI types
        values: Python values, one per type

    Returns:
        Head words followed by tail words for dynamic arguments

    Raises:
        EncodingError: On count mismatch or an unencodable value
    """
    if len(types) != len(values):
        raise EncodingError(f"Expected {len(types)} arguments, got {len(values)}")

    head: List[Optional[str]] = []
    tails: List[List[str]] = []
    for abi_type, value in zip(types, values):
        if abi_type.startswith("("):
            raise EncodingError("Tuple arguments are not supported for encoding", abi_type=abi_type)
        if abi_type == "string":
            head.append(None)
            tails.append(encode_string(value))
        elif abi_type == "bytes":
            if isinstance(value, str):
                try:
                    value = bytes.fromhex(_strip_hex(value))
                except ValueError:
                    raise EncodingError(f"Malformed hex for bytes: {value!r}", abi_type="bytes", value=value)
            if not isinstance(value, (bytes, bytearray)):
                raise EncodingError("bytes value must be bytes or hex", abi_type="bytes", value=value)
            head.append(None)
            tails.append(_encode_dynamic_bytes(bytes(value)))
        else:
            head.append(encode_static(abi_type, value))

    # Offsets are measured from the start of the argument block
    words: List[str] = []
    offset = len(types) * WORD_BYTES
    tail_iter = iter(tails)
    tail_words: List[str] = []
    for word in head:
        if word is None:
            tail = next(tail_iter)
            words.append(_word(offset))
            tail_words.extend(tail)
            offset += len(tail) * WORD_BYTES
        else:
            words.append(word)
    return words + tail_words


def encode_call(signature: str, args: Sequence[Any]) -> EncodedCall:
    """
    Encode a full contract call.

    Args:
        signature: Function signature such as ``createPolicy(uint256,uint256,uint256)``
        args: Argument values in declaration order

    Returns:
        EncodedCall with selector and argument words
    """
    name, types = parse_signature(signature)
    canonical = canonical_signature(name, types)
    words = encode_arguments(types, list(args))
    return EncodedCall(
        signature=canonical,
        selector=keccak_hex(canonical)[:10],
        argument_words=tuple(words),
    )


def word_to_int(word: str) -> int:
    """
    Interpret a hex word as a big-endian unsigned integer.

    Raises:
        DecodingError: If the word is not hex or is wider than 32 bytes
    """
    if not isinstance(word, str):
        raise DecodingError(f"Expected hex string, got {type(word).__name__}")
    raw = _strip_hex(word)
    if not raw:
        return 0
    if not _HEX_RE.match(raw) or len(raw) > WORD_HEX:
        raise DecodingError(f"Malformed 32-byte word: {word!r}", abi_type="uint256")
    return int(raw, 16)


def topic_to_int(log: LogEntry, topic_index: int = 1) -> Optional[int]:
    """Read topic ``topic_index`` of a log as uint256, or None if it is absent."""
    if topic_index < 0 or topic_index >= len(log.topics):
        return None
    return word_to_int(log.topics[topic_index])


def _read_word(data: bytes, position: int, abi_type: str) -> bytes:
    if position < 0 or position + WORD_BYTES > len(data):
        raise DecodingError(f"Data too short to read {abi_type} at byte {position}", abi_type=abi_type)
    return data[position:position + WORD_BYTES]


def _decode_static(abi_type: str, word: bytes) -> Any:
    number = int.from_bytes(word, "big")
    if abi_type == "address":
        if number >> 160:
            raise DecodingError("Address word has non-zero high bytes", abi_type=abi_type)
        return Web3.to_checksum_address("0x" + word[-20:].hex())
    if abi_type == "bool":
        if number not in (0, 1):
            raise DecodingError(f"Invalid bool encoding: {number}", abi_type=abi_type)
        return bool(number)
    uint_match = _UINT_RE.match(abi_type)
    if uint_match:
        bits = int(uint_match.group(1) or "256")
        if number >> bits:
            raise DecodingError(f"Value overflows {abi_type}", abi_type=abi_type)
        return number
    bytes_match = _BYTES_N_RE.match(abi_type)
    if bytes_match:
        return "0x" + word[:int(bytes_match.group(1))].hex()
    raise DecodingError(f"Unsupported ABI type for decoding: {abi_type}", abi_type=abi_type)


def _static_words(abi_type: str) -> int:
    """Number of head words a static type occupies in place."""
    if abi_type.startswith("(") and not is_dynamic(abi_type):
        return sum(_static_words(member) for member in split_types(abi_type[1:-1]))
    return 1


def _decode_block(types: Sequence[str], data: bytes, base: int) -> List[Any]:
    values: List[Any] = []
    position = base
    for abi_type in types:
        if abi_type.startswith("(") and not is_dynamic(abi_type):
            # static tuples are laid out in place, member by member
            values.append(tuple(_decode_block(split_types(abi_type[1:-1]), data, position)))
            position += _static_words(abi_type) * WORD_BYTES
            continue

        head = _read_word(data, position, abi_type)
        position += WORD_BYTES
        if abi_type.startswith("("):
            start = base + int.from_bytes(head, "big")
            values.append(tuple(_decode_block(split_types(abi_type[1:-1]), data, start)))
        elif abi_type in ("string", "bytes"):
            start = base + int.from_bytes(head, "big")
            length = int.from_bytes(_read_word(data, start, abi_type), "big")
            end = start + WORD_BYTES + length
            if end > len(data):
                raise DecodingError(f"{abi_type} payload runs past end of data", abi_type=abi_type)
            payload = data[start + WORD_BYTES:end]
            if abi_type == "bytes":
                values.append("0x" + payload.hex())
            else:
                try:
                    values.append(payload.decode("utf-8"))
                except UnicodeDecodeError as e:
                    raise DecodingError(f"string is not valid UTF-8: {e}", abi_type=abi_type)
        else:
            values.append(_decode_static(abi_type, head))
    return values


def decode_values(types: Sequence[str], data_hex: str) -> List[Any]:
    """
    Decode ABI-encoded return data.

    Args:
        types: ABI types of the returned values; tuples as ``(t1,t2)``
        data_hex: Raw ``eth_call`` result

    Returns:
        Decoded Python values (int, str, bool, tuple)

    Raises:
        DecodingError: If the data is malformed or truncated
    """
    if not isinstance(data_hex, str):
        raise DecodingError(f"Expected hex string, got {type(data_hex).__name__}")
    raw = _strip_hex(data_hex)
    if len(raw) % 2 or not _HEX_RE.match(raw):
        raise DecodingError(f"Return data is not valid hex: {data_hex[:20]!r}")
    try:
        normalized = [normalize_type(t) for t in types]
    except EncodingError as e:
        raise DecodingError(str(e), abi_type=e.abi_type)
    return _decode_block(normalized, bytes.fromhex(raw), 0)
