"""目录格式解析单元测试。"""

import pytest

from src.modules.sources.domain.entities import Source, SourceFormat
from src.modules.sources.domain.exceptions import SourceFormatError
from src.modules.sources.domain.parsers import parse_v1, parse_v2
from src.modules.stamps.domain.codec import DNSStampCodec
from src.modules.stamps.domain.entities import ServerInformalProperties, StampProtocol
from src.modules.stamps.domain.exceptions import InvalidStampError

URL = "https://catalog.example.com/resolvers.csv"
HEADER = ",".join(f"col{i}" for i in range(14))
PK = ":".join(["AB"] * 32)


def _row(
    name: str = "alpha",
    dnssec: str = "yes",
    nolog: str = "no",
    addr: str = "1.2.3.4",
    provider: str = "2.dnscrypt-cert.alpha",
    pk: str = PK,
    fields: int = 14,
) -> str:
    values = [""] * fields
    values[0] = name
    if fields > 12:
        values[7] = dnssec
        values[8] = nolog
        values[10] = addr
        values[11] = provider
        values[12] = pk
    return ",".join(values)


def _v1(*rows: str) -> Source:
    return Source(url=URL, format=SourceFormat.V1, content="\n".join(rows) + "\n")


def _v2(content: str) -> Source:
    return Source(url=URL, format=SourceFormat.V2, content=content)


# ============================================
# V1 (legacy CSV)
# ============================================


class TestParseV1:
    def test_header_is_skipped(self, stub_codec):
        entries = parse_v1(_v1(HEADER, _row("alpha"), _row("beta")), "", stub_codec)
        assert [e.name for e in entries] == ["alpha", "beta"]

    def test_prefix_is_prepended(self, stub_codec):
        entries = parse_v1(_v1(HEADER, _row("alpha")), "public-", stub_codec)
        assert entries[0].name == "public-alpha"

    def test_columns_are_mapped(self, stub_codec):
        parse_v1(
            _v1(HEADER, _row(addr="9.9.9.9", provider="prov", pk="00ff")),
            "",
            stub_codec,
        )
        call = stub_codec.legacy_calls[0]
        assert call["server_addr"] == "9.9.9.9"
        assert call["provider_name"] == "prov"
        assert call["server_pk"] == "00ff"

    @pytest.mark.parametrize(
        ("dnssec", "nolog", "expected"),
        [
            ("yes", "yes", ServerInformalProperties.DNSSEC | ServerInformalProperties.NO_LOG),
            ("YES", "no", ServerInformalProperties.DNSSEC),
            ("no", "Yes", ServerInformalProperties.NO_LOG),
            ("", "", ServerInformalProperties.NONE),
        ],
    )
    def test_property_flags(self, stub_codec, dnssec, nolog, expected):
        parse_v1(_v1(HEADER, _row(dnssec=dnssec, nolog=nolog)), "", stub_codec)
        assert stub_codec.legacy_calls[0]["props"] == expected

    def test_short_row_names_line_number(self, stub_codec):
        with pytest.raises(SourceFormatError, match="line 2"):
            parse_v1(_v1(HEADER, _row(fields=13)), "", stub_codec)

    def test_short_row_after_valid_rows(self, stub_codec):
        with pytest.raises(SourceFormatError, match="line 3"):
            parse_v1(_v1(HEADER, _row("alpha"), _row(fields=5)), "", stub_codec)

    def test_blank_lines_are_not_counted_in_line_numbers(self, stub_codec):
        content = HEADER + "\n\n" + _row(fields=13) + "\n"
        source = Source(url=URL, format=SourceFormat.V1, content=content)
        with pytest.raises(SourceFormatError, match="line 2$"):
            parse_v1(source, "", stub_codec)

    def test_empty_rows_are_skipped(self, stub_codec):
        content = HEADER + "\n\n" + _row("alpha") + "\n\n"
        source = Source(url=URL, format=SourceFormat.V1, content=content)
        assert [e.name for e in parse_v1(source, "", stub_codec)] == ["alpha"]

    def test_malformed_csv_yields_no_entries_and_no_error(self, stub_codec):
        # 引号未闭合：整个文档无法切分，宽松处理为空列表
        source = _v1(HEADER, _row("alpha"), '"unterminated,' + "," * 13)
        assert parse_v1(source, "", stub_codec) == []
        assert stub_codec.legacy_calls == []

    def test_bare_quote_in_unquoted_field_is_kept(self, stub_codec):
        # csv 模块把字段中间的引号当作普通字符，不视为格式错误
        entries = parse_v1(_v1(HEADER, _row(name='al"pha')), "", stub_codec)
        assert [e.name for e in entries] == ['al"pha']

    def test_codec_failure_aborts(self, make_codec):
        codec = make_codec(fail_on="bad-address")
        source = _v1(HEADER, _row("alpha"), _row("beta", addr="bad-address"))
        with pytest.raises(InvalidStampError):
            parse_v1(source, "", codec)

    def test_real_codec_builds_dnscrypt_stamps(self):
        entries = parse_v1(_v1(HEADER, _row(addr="1.2.3.4", nolog="yes")), "", DNSStampCodec())
        stamp = entries[0].stamp
        assert stamp.protocol is StampProtocol.DNSCRYPT
        assert stamp.server_addr == "1.2.3.4:443"
        assert stamp.server_pk == bytes([0xAB] * 32)
        assert ServerInformalProperties.NO_LOG in stamp.props

    def test_parse_is_fresh_on_each_call(self, stub_codec):
        source = _v1(HEADER, _row("alpha"))
        first = parse_v1(source, "", stub_codec)
        second = parse_v1(source, "", stub_codec)
        assert first == second
        assert first is not second


# ============================================
# V2 (delimited)
# ============================================


class TestParseV2:
    def test_parses_entries(self, v2_document, alpha_stamp, beta_stamp):
        entries = parse_v2(_v2(v2_document), "", DNSStampCodec())
        assert [e.name for e in entries] == ["alpha", "beta"]
        assert entries[0].stamp == alpha_stamp
        assert entries[1].stamp == beta_stamp

    def test_prefix_is_ignored(self, stub_codec):
        entries = parse_v2(_v2("## alpha\nsdns://AAAAAAAA\n"), "p-", stub_codec)
        assert entries[0].name == "alpha"

    def test_preamble_is_discarded(self, stub_codec):
        content = "# title\nsdns://preamble-is-ignored\n## alpha\nsdns://alpha-stamp\n"
        entries = parse_v2(_v2(content), "", stub_codec)
        assert stub_codec.string_calls == ["sdns://alpha-stamp"]
        assert len(entries) == 1

    def test_first_stamp_line_wins_and_lines_are_trimmed(self, stub_codec):
        content = "## alpha \r\n description\r\n   sdns://first-stamp  \r\nsdns://second\n"
        entries = parse_v2(_v2(content), "", stub_codec)
        assert entries[0].name == "alpha"
        assert stub_codec.string_calls == ["sdns://first-stamp"]

    def test_missing_delimiter_names_source_url(self, stub_codec):
        with pytest.raises(SourceFormatError, match=URL):
            parse_v2(_v2("alpha\nsdns://AAAAAAAA\n"), "", stub_codec)

    def test_single_line_segment_is_an_error(self, stub_codec):
        with pytest.raises(SourceFormatError, match=URL):
            parse_v2(_v2("## alpha\n## beta\nsdns://AAAAAAAA\n"), "", stub_codec)

    def test_blank_name_is_an_error(self, stub_codec):
        content = "## \t\n\nsdns://AAAAAAAA\n"
        with pytest.raises(SourceFormatError, match=URL):
            parse_v2(_v2(content), "", stub_codec)

    def test_missing_stamp_names_entry_and_url(self, stub_codec):
        content = "## alpha\nno stamp here\n"
        with pytest.raises(SourceFormatError, match=r"\[alpha\].*" + URL):
            parse_v2(_v2(content), "", stub_codec)

    def test_short_stamp_is_rejected(self, stub_codec):
        content = "## alpha\nsdns://\n"
        with pytest.raises(SourceFormatError, match="Missing stamp for server"):
            parse_v2(_v2(content), "", stub_codec)
        assert stub_codec.string_calls == []

    def test_codec_failure_aborts(self, make_codec):
        codec = make_codec(fail_on="sdns://broken")
        content = "## alpha\nsdns://AAAAAAAA\n## beta\nsdns://broken\n"
        with pytest.raises(InvalidStampError):
            parse_v2(_v2(content), "", codec)
