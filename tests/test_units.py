"""Unit conversions, memory arithmetic and parallelism."""

from datetime import datetime, timedelta, timezone

import pytest

from gc_digest.units import (
    PARALLELISM_MAX,
    Memory,
    Unit,
    add_memory,
    calc_parallelism,
    micros_to_millis,
    millis_between,
    millis_to_micros,
    nanos_to_micros,
    parse_datestamp,
    secs_to_centis,
    secs_to_micros,
    secs_to_millis,
    subtract_memory,
)


def test_megabytes_to_kilobytes_and_back():
    five_mb = Memory(value=5, unit=Unit.MEGABYTES)
    assert five_mb.kilobytes == 5120
    assert five_mb.convert_to(Unit.KILOBYTES).convert_to(Unit.MEGABYTES) == five_mb


@pytest.mark.parametrize(
    "text, kilobytes",
    [
        ("1024K", 1024),
        ("8M", 8192),
        ("2G", 2 * 1024 * 1024),
        ("1019.6M", 1044070),
        ("0.0B", 0),
        ("3280,0K", 3280),
        ("512B", 0),
    ],
)
def test_parse_size_token(text, kilobytes):
    assert Memory.parse(text).kilobytes == kilobytes


def test_parse_rejects_garbage():
    with pytest.raises(ValueError):
        Memory.parse("12Q")


def test_add_treats_absent_as_zero():
    assert add_memory(Memory.kb(10), None).kilobytes == 10
    assert add_memory(None, None).kilobytes == 0
    assert Memory.kb(3).plus(Memory(value=1, unit=Unit.MEGABYTES)).kilobytes == 1027


def test_subtract_clamps_at_zero():
    assert subtract_memory(Memory.kb(10), Memory.kb(4)).kilobytes == 6
    assert subtract_memory(Memory.kb(4), Memory.kb(10)).kilobytes == 0
    assert subtract_memory(None, Memory.kb(1)) is None


def test_durations_are_exact():
    assert millis_to_micros("1.767") == 1767
    assert secs_to_micros("0.0414530") == 41453
    assert secs_to_millis("7.944") == 7944
    assert secs_to_centis("0,15") == 15
    assert nanos_to_micros("1500") == 2
    assert nanos_to_micros("2500") == 2


def test_micros_to_millis_truncates():
    assert micros_to_millis(1767) == 1
    assert micros_to_millis(999) == 0
    assert micros_to_millis(3534) == 3


def test_malformed_number_raises_value_error():
    with pytest.raises(ValueError):
        secs_to_millis("1.2.3")


@pytest.mark.parametrize(
    "user, sys, real, expected",
    [
        (15, 1, 4, 400),
        (1, 0, 1, 100),
        (1, 0, 2, 50),
        (1, 0, 0, PARALLELISM_MAX),
        (0, 0, 0, 100),
        (0, 0, 5, 0),
        (1, 0, 8, 12),
    ],
)
def test_parallelism(user, sys, real, expected):
    assert calc_parallelism(user, sys, real) == expected


def test_datestamp_offsets():
    with_colon = parse_datestamp("2021-03-09T14:45:02.441-03:00")
    without_colon = parse_datestamp("2021-03-09T14:45:02.441-0300")
    assert with_colon == without_colon
    assert with_colon.utcoffset() == timedelta(hours=-3)


def test_millis_between_naive_start_is_utc():
    start = datetime(2021, 3, 9, 17, 45, 0)
    end = datetime(2021, 3, 9, 17, 45, 2, 441000, tzinfo=timezone.utc)
    assert millis_between(start, end) == 2441
