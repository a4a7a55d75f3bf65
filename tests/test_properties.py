"""
Hexit Property Test Suite

Properties checked with generated inputs:
1. Hex pairs evaluate to exactly their bytes
2. Decimal forms fit a byte or overflow
3. Size wrappers agree with an independent binary reader
4. Arbitrary text never crashes the pipeline and respects the limit
"""

import io
import os
import sys

from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st
from kaitaistruct import KaitaiStream

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hexit import CoreError, EvalError, EvalErrorKind, evaluate
from hexit.compiler import is_function_name


MAX_EXAMPLES = int(os.getenv("HEXIT_PROP_EXAMPLES", "200"))

PROP_SETTINGS = settings(
    max_examples=MAX_EXAMPLES,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

# (function prefix, bits, KaitaiStream reader)
SIZES = [
    ("be", 8, KaitaiStream.read_u1),
    ("le", 8, KaitaiStream.read_u1),
    ("be", 16, KaitaiStream.read_u2be),
    ("le", 16, KaitaiStream.read_u2le),
    ("be", 32, KaitaiStream.read_u4be),
    ("le", 32, KaitaiStream.read_u4le),
    ("be", 64, KaitaiStream.read_u8be),
    ("le", 64, KaitaiStream.read_u8le),
]


def reader(data):
    return KaitaiStream(io.BytesIO(data))


# ============================================================================
# 1. Hex pairs
# ============================================================================

@given(data=st.binary(max_size=64), lowercase=st.booleans(), separator=st.sampled_from(["", " ", "\n"]))
@PROP_SETTINGS
def test_prop_hex_pairs(data, lowercase, separator) -> None:
    fmt = "{:02x}" if lowercase else "{:02X}"
    source = separator.join(fmt.format(b) for b in data)
    # "be16", "be32" and "be64" are all hex digits but name a function
    assume(not is_function_name(source))
    assert evaluate(source) == data


# ============================================================================
# 2. Decimal range
# ============================================================================

@given(n=st.integers(min_value=0, max_value=255))
@PROP_SETTINGS
def test_prop_decimal_byte(n) -> None:
    assert evaluate(f"[{n}]") == bytes([n])


@given(n=st.integers(min_value=256, max_value=2**70))
@PROP_SETTINGS
def test_prop_bare_decimal_overflows(n) -> None:
    try:
        evaluate(f"[{n}]")
    except EvalError as e:
        assert e.kind == EvalErrorKind.INTEGER_OVERFLOW
    else:
        raise AssertionError(f"[{n}] evaluated without a size")


# ============================================================================
# 3. Size wrappers
# ============================================================================

@given(size=st.sampled_from(SIZES), data=st.data())
@PROP_SETTINGS
def test_prop_size_wrap_round_trip(size, data) -> None:
    prefix, bits, read = size
    n = data.draw(st.integers(min_value=0, max_value=2**bits - 1))

    out = evaluate(f"{prefix}{bits}[{n}]")
    assert len(out) == bits // 8

    stream = reader(out)
    assert read(stream) == n
    assert stream.is_eof()


@given(size=st.sampled_from(SIZES), data=st.data())
@PROP_SETTINGS
def test_prop_size_wrap_overflow(size, data) -> None:
    prefix, bits, _ = size
    n = data.draw(st.integers(min_value=2**bits, max_value=2**bits * 4))
    try:
        evaluate(f"{prefix}{bits}[{n}]")
    except EvalError as e:
        assert e.kind == EvalErrorKind.INTEGER_OVERFLOW
    else:
        raise AssertionError(f"{n} fit in {bits} bits")


@given(x=st.floats(width=32, allow_nan=False))
@PROP_SETTINGS
def test_prop_float32_round_trip(x) -> None:
    assert reader(evaluate(f"be32[f{x!r}]")).read_f4be() == x
    assert reader(evaluate(f"le32[f{x!r}]")).read_f4le() == x


@given(x=st.floats(allow_nan=False))
@PROP_SETTINGS
def test_prop_float64_round_trip(x) -> None:
    assert reader(evaluate(f"be64[f{x!r}]")).read_f8be() == x


@given(count=st.integers(min_value=0, max_value=300), data=st.binary(min_size=1, max_size=4))
@PROP_SETTINGS
def test_prop_repeat_length(count, data) -> None:
    text = data.hex()
    out = evaluate(f"x{count}(be16[{len(data)}]) x{count}(\"{text}\")")
    assert len(out) == count * (2 + len(text))
    assert out[2 * count:] == text.encode("ascii") * count


# ============================================================================
# 4. Arbitrary input
# ============================================================================

LIMIT = 1024

source_text = st.one_of(
    st.text(max_size=200),
    st.lists(
        st.sampled_from([
            "12", "AB", " ", "\n", ":", "#", "(", ")", "[", "]", "\"", "\\",
            "be16", "le64", "x0", "x3", "x4294967295", "and", "or", "xor", "not",
            "TCP_SYN", "IP_UDP", "NOPE_NOPE", "[256]", "[b1]", "[f1.5]", "[::1]",
            "[10.0.0.1]", "[2020-06-07T13:14:17Z]", "\"ab\"",
        ]),
        max_size=60,
    ).map("".join),
)


@given(source=source_text)
@PROP_SETTINGS
def test_prop_never_crashes(source) -> None:
    try:
        out = evaluate(source, limit=LIMIT)
    except CoreError as e:
        assert e.line >= 1
        assert e.col >= 0
    else:
        assert len(out) <= LIMIT
