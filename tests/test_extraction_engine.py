from __future__ import annotations

import csv
import io
import logging

import pytest

from feed_converter.errors import ProcessingError
from feed_converter.extraction_engine import ExtractionEngine, extract_to_csv
from feed_converter.models import (
    Calculation,
    CalculationOperator,
    CustomColumn,
    ExportJob,
    Filter,
    FilterCondition,
    MergeColumn,
    ProcessingStats,
)
from feed_converter.sources import BytesSource, FileSource


def _item(item_id: str, price: str) -> str:
    return f"<item><id>{item_id}</id><price>{price}</price></item>"


PRICES_FEED = "<feed>" + _item("1", "10 USD") + _item("2", "20 USD") + _item("3", "10 USD") + "</feed>"


def _rows(data: bytes) -> list[list[str]]:
    return list(csv.reader(io.StringIO(data.decode("utf-8"))))


def test_extracts_selected_fields_in_order() -> None:
    data = extract_to_csv(BytesSource(PRICES_FEED, 7), "item", ["price", "id"])

    assert data == b"price,id\n10 USD,1\n20 USD,2\n10 USD,3\n"


def test_filter_greater_than_keeps_all_rows() -> None:
    data = extract_to_csv(
        BytesSource(PRICES_FEED),
        "item",
        ["id", "price"],
        filters=[Filter("price", FilterCondition.GREATER_THAN, "5")],
    )

    assert len(_rows(data)) == 4


def test_filters_reject_items() -> None:
    data = extract_to_csv(
        BytesSource(PRICES_FEED),
        "item",
        ["id"],
        filters=[Filter("price", FilterCondition.LESS_THAN, "15")],
    )

    assert _rows(data) == [["id"], ["1"], ["3"]]


def test_filter_on_unselected_path_is_captured() -> None:
    doc = (
        "<feed><item><id>1</id><availability>in stock</availability></item>"
        "<item><id>2</id><availability>out of stock</availability></item></feed>"
    )

    data = extract_to_csv(
        BytesSource(doc),
        "item",
        ["id"],
        filters=[Filter("availability", FilterCondition.EQUALS, "IN STOCK")],
    )

    assert data == b"id\n1\n"


def test_deduplicate_keeps_rows_with_distinct_ids() -> None:
    data = extract_to_csv(BytesSource(PRICES_FEED), "item", ["id", "price"], deduplicate=True)

    assert len(_rows(data)) == 4


def test_deduplicate_drops_identical_serialized_rows() -> None:
    stats: list[ProcessingStats] = []

    data = extract_to_csv(
        BytesSource(PRICES_FEED),
        "item",
        ["price"],
        deduplicate=True,
        progress=stats.append,
    )

    assert data == b"price\n10 USD\n20 USD\n"
    assert stats[-1].items_found == 2


def test_without_deduplicate_identical_rows_are_kept() -> None:
    data = extract_to_csv(BytesSource(PRICES_FEED), "item", ["price"])

    assert len(_rows(data)) == 4


def test_output_is_identical_across_runs() -> None:
    source = BytesSource(PRICES_FEED, 5)
    params = dict(
        root_item_tag="item",
        selected_paths=["id", "price"],
        custom_columns=[CustomColumn("shop", "demo")],
    )

    assert extract_to_csv(source, **params) == extract_to_csv(source, **params)


def test_calculation_custom_column_and_merge_columns() -> None:
    data = extract_to_csv(
        BytesSource(PRICES_FEED),
        "item",
        ["id", "price"],
        aliases={"id": "ID"},
        custom_columns=[CustomColumn("qty", "2")],
        calculations=[Calculation("total", "price", CalculationOperator.MULTIPLY, "qty")],
        merge_columns=[MergeColumn("label", "id", "price")],
    )

    assert _rows(data)[:2] == [
        ["ID", "price", "qty", "total", "label"],
        ["1", "10 USD", "2", "20", "1 10 USD"],
    ]


def test_division_by_zero_row_is_still_emitted() -> None:
    doc = "<feed><item><id>1</id><price>10</price><stock>0</stock></item></feed>"

    data = extract_to_csv(
        BytesSource(doc),
        "item",
        ["id"],
        calculations=[Calculation("per_unit", "price", CalculationOperator.DIVIDE, "stock")],
    )

    assert data == b"id,per_unit\n1,0\n"


def test_nested_paths_and_repeated_leaves_concatenate() -> None:
    doc = (
        "<rss><channel><item>"
        "<title>Shoe</title>"
        "<shipping><country>CZ</country><price>5</price></shipping>"
        "<shipping><country>SK</country><price>7</price></shipping>"
        "</item></channel></rss>"
    )

    data = extract_to_csv(BytesSource(doc), "item", ["title", "shipping > country"])

    assert data == b"title,shipping > country\nShoe,CZSK\n"


def test_values_needing_quotes_are_escaped() -> None:
    doc = '<feed><item><title><![CDATA[Shoe, "red"]]></title></item></feed>'

    data = extract_to_csv(BytesSource(doc), "item", ["title"])

    assert data == b'title\n"Shoe, ""red"""\n'
    assert _rows(data)[1] == ['Shoe, "red"']


def test_text_outside_items_is_ignored() -> None:
    doc = "<feed><title>Shop</title><item><title>Shoe</title></item><footer><title>x</title></footer></feed>"

    data = extract_to_csv(BytesSource(doc), "item", ["title"])

    assert data == b"title\nShoe\n"


def test_header_only_when_no_items() -> None:
    data = extract_to_csv(BytesSource("<feed><other/></feed>"), "item", ["id"])

    assert data == b"id\n"


def test_progress_snapshots_are_monotonic_and_detached() -> None:
    snapshots: list[ProcessingStats] = []
    source = BytesSource(PRICES_FEED, 16)

    extract_to_csv(source, "item", ["id"], progress=snapshots.append)

    processed = [s.processed_bytes for s in snapshots]
    assert processed == sorted(processed)
    assert snapshots[-1].processed_bytes == len(PRICES_FEED)
    assert snapshots[-1].total_bytes == len(PRICES_FEED)
    assert snapshots[-1].items_found == 3

    snapshots[0].items_found = 99
    assert snapshots[1].items_found != 99


def test_read_error_mid_stream_raises_processing_error() -> None:
    class BrokenSource:
        def open(self):
            yield PRICES_FEED[:40].encode("utf-8")
            raise OSError("disk gone")

    with pytest.raises(ProcessingError):
        extract_to_csv(BrokenSource(), "item", ["id"])


def test_malformed_markup_does_not_abort(caplog: pytest.LogCaptureFixture) -> None:
    doc = "<feed>" + _item("1", "5 & 6") + _item("2", "7") + "</feed>"

    with caplog.at_level(logging.WARNING):
        data = extract_to_csv(BytesSource(doc), "item", ["id"])

    assert _rows(data)[0] == ["id"]
    assert ["2"] in _rows(data)


def test_run_job_reads_file_source(tmp_path) -> None:
    feed_path = tmp_path / "feed.xml"
    feed_path.write_text('<?xml version="1.0" encoding="UTF-8"?>\n' + PRICES_FEED, encoding="utf-8")
    job = ExportJob(root_item_tag="item", selected_paths=["id"], column_aliases={"id": "Product"})

    data = ExtractionEngine().run_job(FileSource(feed_path, chunk_size=8), job)

    assert data == b"Product\n1\n2\n3\n"


def test_run_job_without_root_tag_is_rejected() -> None:
    with pytest.raises(ValueError):
        ExtractionEngine().run_job(BytesSource(PRICES_FEED), ExportJob(selected_paths=["id"]))
