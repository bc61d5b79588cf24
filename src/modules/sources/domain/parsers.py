"""Catalog format parsers.

两种目录格式：
- V1: 旧版 CSV，首行为表头，每行至少 14 列
- V2: 以 "## " 分段的 markdown，每段首行为名称，包含一行 sdns:// stamp
"""

import csv
import io

from loguru import logger

from src.modules.sources.domain.entities import CatalogEntry, Source
from src.modules.sources.domain.exceptions import SourceFormatError
from src.modules.sources.domain.ports import StampCodec
from src.modules.stamps.domain.entities import STAMP_PREFIX, ServerInformalProperties

V1_MIN_FIELDS = 14
V1_NAME_COLUMN = 0
V1_DNSSEC_COLUMN = 7
V1_NOLOG_COLUMN = 8
V1_ADDR_COLUMN = 10
V1_PROVIDER_COLUMN = 11
V1_PK_COLUMN = 12

V2_SECTION_MARKER = "## "
V2_MIN_STAMP_LENGTH = 8


def parse_v1(source: Source, prefix: str, codec: StampCodec) -> list[CatalogEntry]:
    """解析旧版 CSV 目录。

    无法切分的 CSV（引号未闭合等）返回空列表而不是报错；
    列数不足的行则直接报错，并给出行号（1 起，含表头，不计空行）。
    """
    try:
        records = [
            record
            for record in csv.reader(io.StringIO(source.content), strict=True)
            if record
        ]
    except csv.Error as e:
        logger.debug(f"Ignoring malformed CSV source [{source.url}]: {e}")
        return []

    entries: list[CatalogEntry] = []
    for line_no, record in enumerate(records):
        if line_no == 0:
            continue
        if len(record) < V1_MIN_FIELDS:
            raise SourceFormatError(f"Parse error at line {line_no + 1}")

        name = prefix + record[V1_NAME_COLUMN]
        props = ServerInformalProperties.NONE
        if record[V1_DNSSEC_COLUMN].lower() == "yes":
            props |= ServerInformalProperties.DNSSEC
        if record[V1_NOLOG_COLUMN].lower() == "yes":
            props |= ServerInformalProperties.NO_LOG

        stamp = codec.from_legacy_fields(
            server_addr=record[V1_ADDR_COLUMN],
            server_pk=record[V1_PK_COLUMN],
            provider_name=record[V1_PROVIDER_COLUMN],
            props=props,
        )
        logger.debug(f"Registered [{name}] with stamp [{stamp}]")
        entries.append(CatalogEntry(name=name, stamp=stamp))
    return entries


def parse_v2(source: Source, prefix: str, codec: StampCodec) -> list[CatalogEntry]:
    """解析 "## " 分段格式的目录。

    条目名称原样使用，prefix 只对 V1 目录生效。
    """
    parts = source.content.split(V2_SECTION_MARKER)
    if len(parts) < 2:
        raise SourceFormatError(f"Invalid format for source at [{source.url}]")

    entries: list[CatalogEntry] = []
    for part in parts[1:]:
        lines = part.strip().split("\n")
        if len(lines) < 2:
            raise SourceFormatError(f"Invalid format for source at [{source.url}]")
        name = lines[0].strip()
        if not name:
            raise SourceFormatError(f"Invalid format for source at [{source.url}]")

        stamp_str = next(
            (
                line.strip()
                for line in lines
                if line.strip().startswith(STAMP_PREFIX)
            ),
            "",
        )
        if len(stamp_str) < V2_MIN_STAMP_LENGTH:
            raise SourceFormatError(
                f"Missing stamp for server [{name}] in source from [{source.url}]"
            )

        stamp = codec.from_string(stamp_str)
        logger.debug(f"Registered [{name}] with stamp [{stamp}]")
        entries.append(CatalogEntry(name=name, stamp=stamp))
    return entries
