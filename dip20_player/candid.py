"""Candid textual values.

Arguments for canister calls are built from a small tagged union
(:class:`PrincipalArg`, :class:`NatArg`, :class:`TextArg`, :class:`BlobArg`)
and rendered with :func:`encode_args`, so no call site ever quotes or escapes
values by hand.

Responses printed by ``dfx canister call`` are parsed by :func:`decode_response`
into plain Python values:

    ========================= =========================
    Candid                    Python
    ========================= =========================
    nat, int, nat8, ...       :class:`int`
    float32, float64          :class:`float`
    text                      :class:`str`
    blob                      :class:`bytes`
    principal                 :class:`Principal`
    bool, null, opt           ``True``/``False``, ``None``, the inner value
    vec                       :class:`list`
    record (labelled)         :class:`dict`
    record (tuple)            :class:`tuple`
    variant                   :class:`Variant`
    ========================= =========================
"""
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

from dip20_player.exceptions.cli import InvalidArgument


class Principal(str):
    """An opaque principal identifier."""

    def __repr__(self):
        return f"Principal({str.__repr__(self)})"


class Variant(NamedTuple):
    tag: str
    value: Any = None


class CandidDecodeError(ValueError):
    def __init__(self, message: str, text: str, position: int):
        super().__init__(f"{message} at position {position} in {text!r}")
        self.text = text
        self.position = position


@dataclass(frozen=True)
class PrincipalArg:
    value: str

    def encode(self) -> str:
        return f"principal {_quote(self.value.encode())}"


@dataclass(frozen=True)
class NatArg:
    value: int
    bits: Optional[int] = None

    def __post_init__(self):
        if self.value < 0:
            raise ValueError(f"nat must not be negative, got {self.value}")
        if self.bits is not None:
            if self.bits not in (8, 16, 32, 64):
                raise ValueError(f"Unsupported nat size: {self.bits}")
            if self.value >= 2 ** self.bits:
                raise ValueError(f"{self.value} does not fit into nat{self.bits}")

    def encode(self) -> str:
        return f"{self.value} : nat{self.bits or ''}"


@dataclass(frozen=True)
class TextArg:
    value: str

    def encode(self) -> str:
        return _quote(self.value.encode("utf-8"))


@dataclass(frozen=True)
class BlobArg:
    value: bytes

    def encode(self) -> str:
        return "blob " + '"' + "".join(f"\\{byte:02x}" for byte in self.value) + '"'


CandidArg = Union[PrincipalArg, NatArg, TextArg, BlobArg]


def _quote(raw: bytes) -> str:
    escaped = []
    for byte in raw:
        char = chr(byte)
        if char == '"':
            escaped.append('\\"')
        elif char == "\\":
            escaped.append("\\\\")
        elif char == "\n":
            escaped.append("\\n")
        elif char == "\t":
            escaped.append("\\t")
        elif char == "\r":
            escaped.append("\\r")
        elif 0x20 <= byte < 0x7F:
            escaped.append(char)
        else:
            escaped.append(f"\\{byte:02x}")
    return '"' + "".join(escaped) + '"'


def encode_args(args: Iterable[CandidArg]) -> str:
    """Render an argument tuple, e.g. ``(principal "aaaaa-aa", 10 : nat)``."""
    return "(" + ", ".join(arg.encode() for arg in args) + ")"


def parse_typed_arg(spec: str, resolve_principal=None) -> CandidArg:
    """Parse a ``TYPE:VALUE`` command line argument.

    ``principal:`` values are passed through ``resolve_principal`` first, which
    allows identity names to be used in place of principal ids.
    """
    kind, sep, value = spec.partition(":")
    if not sep:
        raise InvalidArgument(f"Argument {spec!r} must have the form TYPE:VALUE")
    kind = kind.strip().lower()
    if kind == "principal":
        return PrincipalArg(resolve_principal(value) if resolve_principal else value)
    if kind == "text":
        return TextArg(value)
    if kind == "blob":
        try:
            return BlobArg(bytes.fromhex(value))
        except ValueError as ex:
            raise InvalidArgument(f"blob value must be hex encoded: {value!r}") from ex
    match = re.fullmatch(r"nat(8|16|32|64)?", kind)
    if match:
        try:
            number = int(value.replace("_", ""))
            return NatArg(number, int(match.group(1)) if match.group(1) else None)
        except ValueError as ex:
            raise InvalidArgument(f"Invalid {kind} value {value!r}: {ex}") from ex
    raise InvalidArgument(f"Unknown argument type {kind!r}")


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+|//[^\n]*)
    |(?P<string>"(?:[^"\\]|\\.)*")
    |(?P<number>[+-]?(?:0x[0-9a-fA-F_]+|[0-9][0-9_]*(?:\.[0-9_]*)?(?:[eE][+-]?[0-9]+)?))
    |(?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<punct>[(){};,=:])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPES = {"n": b"\n", "t": b"\t", "r": b"\r", '"': b'"', "'": b"'", "\\": b"\\"}


class _Token(NamedTuple):
    kind: str
    value: str
    position: int


def _tokenize(text: str) -> List[_Token]:
    tokens = []
    position = 0
    while position < len(text):
        match = _TOKEN_RE.match(text, position)
        if not match:
            raise CandidDecodeError("Unexpected character", text, position)
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(_Token(kind, match.group(), position))
        position = match.end()
    return tokens


def _unescape(literal: str) -> bytes:
    body = literal[1:-1]
    out = bytearray()
    index = 0
    while index < len(body):
        char = body[index]
        if char != "\\":
            out += char.encode("utf-8")
            index += 1
            continue
        nxt = body[index + 1]
        if nxt in _ESCAPES:
            out += _ESCAPES[nxt]
            index += 2
        elif nxt == "u":
            end = body.index("}", index)
            out += chr(int(body[index + 3 : end], 16)).encode("utf-8")
            index = end + 1
        else:
            out.append(int(body[index + 1 : index + 3], 16))
            index += 3
    return bytes(out)


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.index = 0

    def peek(self, offset=0) -> Optional[_Token]:
        index = self.index + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def error(self, message):
        token = self.peek()
        position = token.position if token else len(self.text)
        return CandidDecodeError(message, self.text, position)

    def next(self) -> _Token:
        token = self.peek()
        if token is None:
            raise self.error("Unexpected end of input")
        self.index += 1
        return token

    def unescape(self, token: _Token) -> bytes:
        try:
            return _unescape(token.value)
        except (IndexError, ValueError) as ex:
            raise CandidDecodeError(
                f"Malformed string literal ({ex})", self.text, token.position
            ) from ex

    def text_of(self, token: _Token) -> str:
        try:
            return self.unescape(token).decode()
        except UnicodeDecodeError as ex:
            raise CandidDecodeError(f"Invalid UTF-8 ({ex})", self.text, token.position) from ex

    def accept(self, value: str) -> bool:
        token = self.peek()
        if token is not None and token.value == value and token.kind in ("punct", "ident"):
            self.index += 1
            return True
        return False

    def expect(self, value: str):
        if not self.accept(value):
            raise self.error(f"Expected {value!r}")

    def at_end(self) -> bool:
        return self.index >= len(self.tokens)

    def arguments(self) -> Tuple[Any, ...]:
        self.expect("(")
        values = []
        while not self.accept(")"):
            values.append(self.annotated_value())
            if not self.accept(","):
                self.expect(")")
                break
        return tuple(values)

    def annotated_value(self) -> Any:
        value = self.value()
        if self.accept(":"):
            self.skip_type()
        return value

    def skip_type(self):
        token = self.next()
        if token.kind == "punct" and token.value == "(":
            # function / tuple types in annotations, skip balanced
            self.skip_balanced("(", ")")
        elif token.value in ("vec", "opt"):
            self.skip_type()
        elif token.value in ("record", "variant"):
            self.expect("{")
            self.skip_balanced("{", "}")

    def skip_balanced(self, opening, closing):
        depth = 1
        while depth:
            token = self.next()
            if token.value == opening:
                depth += 1
            elif token.value == closing:
                depth -= 1

    def value(self) -> Any:
        token = self.next()
        if token.kind == "number":
            return _number(token.value)
        if token.kind == "string":
            return self.unescape(token).decode("utf-8", errors="replace")
        if token.kind == "punct" and token.value == "(":
            inner = self.annotated_value()
            self.expect(")")
            return inner
        if token.kind != "ident":
            raise CandidDecodeError(f"Unexpected {token.value!r}", self.text, token.position)

        keyword = token.value
        if keyword == "true":
            return True
        if keyword == "false":
            return False
        if keyword == "null":
            return None
        if keyword == "opt":
            return self.annotated_value()
        if keyword == "principal":
            return Principal(self.text_of(self.next_string()))
        if keyword == "blob":
            return self.unescape(self.next_string())
        if keyword == "vec":
            return self.vec()
        if keyword == "record":
            return self.record()
        if keyword == "variant":
            return self.variant()
        raise CandidDecodeError(f"Unknown keyword {keyword!r}", self.text, token.position)

    def next_string(self) -> _Token:
        token = self.next()
        if token.kind != "string":
            raise CandidDecodeError("Expected string literal", self.text, token.position)
        return token

    def vec(self) -> List[Any]:
        self.expect("{")
        items = []
        while not self.accept("}"):
            items.append(self.annotated_value())
            if not self.accept(";"):
                self.expect("}")
                break
        return items

    def label(self) -> Optional[Union[str, int]]:
        """Consume and return a field label if the next tokens are ``<label> =``."""
        token, following = self.peek(), self.peek(1)
        if token is None or following is None or following.value != "=":
            return None
        self.index += 2
        if token.kind == "number":
            return int(token.value.replace("_", ""))
        if token.kind == "string":
            return self.text_of(token)
        return token.value

    def record(self):
        self.expect("{")
        fields = {}
        positional = []
        while not self.accept("}"):
            label = self.label()
            value = self.annotated_value()
            if label is None:
                positional.append(value)
            else:
                fields[label] = value
            if not self.accept(";"):
                self.expect("}")
                break
        if positional and not fields:
            return tuple(positional)
        if fields and all(isinstance(key, int) for key in fields):
            if sorted(fields) == list(range(len(fields))):
                return tuple(fields[key] for key in range(len(fields)))
        fields.update(enumerate(positional))
        return fields

    def variant(self) -> Variant:
        self.expect("{")
        label = self.label()
        if label is None:
            token = self.next()
            if token.kind not in ("ident", "number", "string"):
                raise CandidDecodeError("Expected variant tag", self.text, token.position)
            tag = self.text_of(token) if token.kind == "string" else token.value
            variant = Variant(str(tag))
        else:
            variant = Variant(str(label), self.annotated_value())
        self.accept(";")
        self.expect("}")
        return variant


def _number(literal: str):
    cleaned = literal.replace("_", "")
    if cleaned.lstrip("+-").startswith("0x"):
        return int(cleaned, 16)
    if any(char in cleaned for char in ".eE") and not cleaned.lstrip("+-").startswith("0x"):
        return float(cleaned)
    return int(cleaned)


def decode_value(text: str) -> Any:
    """Decode a single Candid value, e.g. ``1_000 : nat``."""
    parser = _Parser(text)
    value = parser.annotated_value()
    if not parser.at_end():
        raise parser.error("Trailing input")
    return value


def decode_args(text: str) -> Tuple[Any, ...]:
    """Decode a parenthesised argument tuple, e.g. ``(principal "aaaaa-aa", 1 : nat)``."""
    parser = _Parser(text)
    values = parser.arguments()
    if not parser.at_end():
        raise parser.error("Trailing input")
    return values


def decode_response(text: str) -> Any:
    """Decode the output of ``dfx canister call``.

    Single value responses are unwrapped, empty ones yield ``None``.
    """
    text = text.strip()
    if not text:
        return None
    if text.startswith("("):
        values = decode_args(text)
    else:
        values = (decode_value(text),)
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return values


def unwrap_receipt(value: Any) -> Tuple[bool, Any]:
    """Split a ``TxReceipt`` (``Result<Nat, TxError>``) into ``(ok, payload)``.

    The payload is the transaction index on success and the error tag
    (with its argument for ``Other``) on failure.
    """
    if not isinstance(value, Variant) or value.tag not in ("Ok", "Err"):
        raise ValueError(f"Not a TxReceipt: {value!r}")
    if value.tag == "Ok":
        return True, value.value
    reason = value.value
    if isinstance(reason, Variant):
        reason = reason.tag if reason.value is None else f"{reason.tag}: {reason.value}"
    return False, reason


def as_args(values: Sequence[Any]) -> Tuple[CandidArg, ...]:
    """Coerce plain Python values into arguments.

    :class:`Principal` becomes a principal, other ``str`` text, ``bytes`` a blob
    and non-negative ``int`` a ``nat``. Already typed arguments pass through.
    """
    coerced = []
    for value in values:
        if isinstance(value, (PrincipalArg, NatArg, TextArg, BlobArg)):
            coerced.append(value)
        elif isinstance(value, Principal):
            coerced.append(PrincipalArg(str(value)))
        elif isinstance(value, str):
            coerced.append(TextArg(value))
        elif isinstance(value, bytes):
            coerced.append(BlobArg(value))
        elif isinstance(value, int) and not isinstance(value, bool):
            coerced.append(NatArg(value))
        else:
            raise TypeError(f"Cannot encode {value!r} as a Candid argument")
    return tuple(coerced)
