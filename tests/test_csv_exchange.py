"""
Tests for CSV export and bulk priority upload.
"""

import pytest

from carrier_sync.processor import (
    CarrierDataError,
    CSVValidationError,
    csv_format_info,
    export_csv,
    import_csv,
    sync_store,
)
from carrier_sync.processor.csv_exchange import (
    EXPORT_COLUMNS,
    format_weight,
    parse_priority_csv,
)

HEADER = "store_name,account_code,carrier_id,carrier_name,status,weight_in_kg,priority"


def upload(*rows):
    return "\n".join([HEADER, *rows]) + "\n"


def priorities(carriers):
    return {c.carrier_id: (c.priority, c.status) for c in carriers}


class TestFormatWeight:
    """Tests for format_weight."""

    def test_whole_number(self):
        assert format_weight(2.0) == "2"

    def test_fraction(self):
        assert format_weight(0.5) == "0.5"

    def test_missing(self):
        assert format_weight(None) == ""


class TestExportCSV:
    """Tests for export_csv."""

    @pytest.mark.asyncio
    async def test_layout(self, seeded_db):
        content = await export_csv(seeded_db)
        lines = content.splitlines()

        assert lines[0] == ",".join(EXPORT_COLUMNS)
        assert lines[1] == '"Acme","ACME","A","Delhivery (2kg)","active","2","1"'
        assert lines[2] == '"Acme","ACME","X","Xpressbees (0.5 kg)","active","0.5","2"'
        assert lines[3:] == [
            '"Striker","STRI","A","Delhivery (2kg)","active","2","1"',
            '"Striker","STRI","B","Bluedart","active","","2"',
            '"Striker","STRI","C","Ekart","inactive","","3"',
        ]

    @pytest.mark.asyncio
    async def test_inactive_listed_after_active(self, seeded_db, make_carrier):
        await seeded_db.replace_store_carriers("STRI", [
            make_carrier("STRI", "Z", 1, status="inactive"),
            make_carrier("STRI", "A", 1),
            make_carrier("STRI", "B", 2),
        ])

        content = await export_csv(seeded_db)
        stri = [line.split(",")[2] for line in content.splitlines() if '"STRI"' in line]

        assert stri == ['"A"', '"B"', '"Z"']

    @pytest.mark.asyncio
    async def test_quotes_embedded_commas(self, db, make_carrier):
        await db.replace_store_carriers("STRI", [
            make_carrier("STRI", "A", 1, name='Surface, "Express"'),
        ])

        content = await export_csv(db)

        assert '"Surface, ""Express"""' in content

    @pytest.mark.asyncio
    async def test_no_carriers(self, db):
        with pytest.raises(CarrierDataError):
            await export_csv(db)


class TestParsePriorityCSV:
    """Tests for parse_priority_csv."""

    def test_row_numbers_follow_file_lines(self):
        rows = parse_priority_csv(upload(
            'Striker,STRI,A,Delhivery,active,2,1',
            '',
            'Striker,STRI,B,Bluedart,active,,2',
        ))

        assert [(r.carrier_id, r.row_number) for r in rows] == [("A", 2), ("B", 4)]

    def test_byte_order_mark_and_crlf(self):
        content = "\ufeff" + upload("Striker,STRI,A,Delhivery,active,2,1").replace("\n", "\r\n")

        rows = parse_priority_csv(content)

        assert rows[0].account_code == "STRI"
        assert rows[0].priority == 1

    def test_values_trimmed(self):
        rows = parse_priority_csv(upload(' Striker , STRI , A ,Delhivery, Inactive ,, 3 '))

        assert rows[0].carrier_id == "A"
        assert rows[0].priority == 3
        assert rows[0].status == "Inactive"

    @pytest.mark.parametrize("raw", ["0", "-1", "1.5", "abc", "", "2147483648"])
    def test_invalid_priority_parsed_as_none(self, raw):
        rows = parse_priority_csv(upload(f"Striker,STRI,A,Delhivery,active,,{raw}"))

        assert rows[0].priority is None
        assert rows[0].priority_raw == raw

    def test_missing_required_column(self):
        content = "account_code,carrier_id,carrier_name,status,priority\nSTRI,A,X,active,1\n"

        with pytest.raises(CSVValidationError) as exc_info:
            parse_priority_csv(content)

        assert "weight_in_kg" in str(exc_info.value)

    def test_missing_account_code_column(self):
        content = "carrier_id,carrier_name,status,weight_in_kg,priority\nA,X,active,,1\n"

        with pytest.raises(CSVValidationError) as exc_info:
            parse_priority_csv(content)

        assert "account_code" in str(exc_info.value)

    def test_header_only(self):
        with pytest.raises(CSVValidationError):
            parse_priority_csv(HEADER + "\n")

    def test_empty_file(self):
        with pytest.raises(CSVValidationError):
            parse_priority_csv("")


class TestImportCSV:
    """Tests for import_csv."""

    @pytest.mark.asyncio
    async def test_export_then_import_changes_nothing(self, seeded_db):
        content = await export_csv(seeded_db)

        result = await import_csv(seeded_db, content)

        assert result.updated_count == 0
        assert sorted(result.stores_processed) == ["ACME", "STRI"]
        assert result.total_carriers == 5

    @pytest.mark.asyncio
    async def test_reorders_one_store(self, seeded_db):
        result = await import_csv(seeded_db, upload(
            "Striker,STRI,A,Delhivery (2kg),active,2,2",
            "Striker,STRI,B,Bluedart,active,,1",
            "Striker,STRI,C,Ekart,inactive,,3",
        ))

        assert result.updated_count == 2
        assert result.stores_processed == ["STRI"]
        assert priorities(await seeded_db.get_carriers("STRI")) == {
            "A": (2, "active"),
            "B": (1, "active"),
            "C": (3, "inactive"),
        }
        # Stores not named in the file are untouched
        assert priorities(await seeded_db.get_carriers("ACME")) == {
            "A": (1, "active"),
            "X": (2, "active"),
        }

    @pytest.mark.asyncio
    async def test_gaps_closed(self, seeded_db):
        await import_csv(seeded_db, upload(
            "Striker,STRI,A,Delhivery (2kg),active,2,10",
            "Striker,STRI,B,Bluedart,active,,5",
            "Striker,STRI,C,Ekart,inactive,,3",
        ))

        carriers = priorities(await seeded_db.get_carriers("STRI"))
        assert carriers["B"] == (1, "active")
        assert carriers["A"] == (2, "active")

    @pytest.mark.asyncio
    async def test_status_normalized(self, seeded_db):
        await import_csv(seeded_db, upload(
            "Striker,STRI,A,Delhivery (2kg),INACTIVE,2,1",
            "Striker,STRI,B,Bluedart,Active,,2",
            "Striker,STRI,C,Ekart,active,,3",
        ))

        carriers = priorities(await seeded_db.get_carriers("STRI"))
        assert carriers["A"][1] == "inactive"
        assert carriers["B"] == (1, "active")
        assert carriers["C"] == (2, "active")

    @pytest.mark.asyncio
    async def test_empty_status_keeps_existing(self, seeded_db):
        await import_csv(seeded_db, upload(
            "Striker,STRI,A,Delhivery (2kg),,2,1",
            "Striker,STRI,B,Bluedart,,,2",
            "Striker,STRI,C,Ekart,,,3",
        ))

        carriers = priorities(await seeded_db.get_carriers("STRI"))
        assert carriers["C"] == (3, "inactive")

    @pytest.mark.asyncio
    async def test_unknown_id_rejects_whole_file(self, seeded_db):
        before_stri = await seeded_db.get_carriers("STRI")
        before_acme = await seeded_db.get_carriers("ACME")

        with pytest.raises(CSVValidationError) as exc_info:
            await import_csv(seeded_db, upload(
                "Acme,ACME,A,Delhivery (2kg),active,2,2",
                "Acme,ACME,X,Xpressbees (0.5 kg),active,0.5,1",
                "Striker,STRI,A,Delhivery (2kg),active,2,1",
                "Striker,STRI,B,Bluedart,active,,2",
                "Striker,STRI,C,Ekart,inactive,,3",
                "Striker,STRI,Q,Unknown,active,,4",
            ))

        message = str(exc_info.value)
        assert '"Q"' in message
        assert "STRI" in message
        assert await seeded_db.get_carriers("STRI") == before_stri
        assert await seeded_db.get_carriers("ACME") == before_acme

    @pytest.mark.asyncio
    async def test_all_errors_reported(self, seeded_db):
        with pytest.raises(CSVValidationError) as exc_info:
            await import_csv(seeded_db, upload(
                "Striker,STRI,A,Delhivery (2kg),active,2,1",
                "Striker,STRI,A,Delhivery (2kg),active,2,2",
                "Striker,STRI,B,Bluedart,active,,abc",
                "Acme,ACME,A,Delhivery (2kg),active,2,1",
                "Acme,ACME,X,Xpressbees (0.5 kg),active,0.5,1",
            ))

        errors = exc_info.value.errors
        assert any("invalid priority" in e and "abc" in e for e in errors)
        assert any("duplicate carrier ID" in e for e in errors)
        assert any("missing carrier IDs C" in e for e in errors)
        assert any("Store ACME: priority 1 is used more than once" in e for e in errors)

    @pytest.mark.asyncio
    async def test_store_without_carriers(self, seeded_db):
        with pytest.raises(CSVValidationError) as exc_info:
            await import_csv(seeded_db, upload("Ghost,GHST,A,Delhivery,active,,1"))

        assert "Store GHST: no carriers exist" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_account_code(self, seeded_db):
        with pytest.raises(CSVValidationError) as exc_info:
            await import_csv(seeded_db, upload("Striker,,A,Delhivery,active,,1"))

        assert exc_info.value.errors == ["Row 2: account_code is empty"]

    @pytest.mark.asyncio
    async def test_round_trip_after_carrier_goes_inactive(self, seeded_db, fake_client):
        store = await seeded_db.get_store("STRI")
        await sync_store(store, seeded_db, client=fake_client({"message": [
            {"id": "A", "name": "Delhivery (2kg)"},
            {"id": "B", "name": "Bluedart", "status": "inactive"},
            {"id": "D", "name": "Dtdc"},
        ]}))
        before = priorities(await seeded_db.get_carriers("STRI"))
        # B kept its slot while D was renumbered into it
        assert before == {"A": (1, "active"), "B": (2, "inactive"), "D": (2, "active")}

        result = await import_csv(seeded_db, await export_csv(seeded_db))

        assert result.updated_count == 0
        assert priorities(await seeded_db.get_carriers("STRI")) == before

    @pytest.mark.asyncio
    async def test_inactive_row_may_share_priority(self, seeded_db):
        await import_csv(seeded_db, upload(
            "Striker,STRI,A,Delhivery (2kg),active,2,1",
            "Striker,STRI,B,Bluedart,active,,2",
            "Striker,STRI,C,Ekart,,,2",
        ))

        assert priorities(await seeded_db.get_carriers("STRI")) == {
            "A": (1, "active"),
            "B": (2, "active"),
            "C": (2, "inactive"),
        }

    @pytest.mark.asyncio
    async def test_row_turned_active_counts_towards_uniqueness(self, seeded_db):
        with pytest.raises(CSVValidationError) as exc_info:
            await import_csv(seeded_db, upload(
                "Striker,STRI,A,Delhivery (2kg),active,2,1",
                "Striker,STRI,B,Bluedart,active,,2",
                "Striker,STRI,C,Ekart,active,,2",
            ))

        assert exc_info.value.errors == [
            "Store STRI: priority 2 is used more than once (rows 3, 4)"
        ]

    @pytest.mark.asyncio
    async def test_oversized_priority_is_a_row_error(self, seeded_db):
        before = await seeded_db.get_carriers("STRI")

        with pytest.raises(CSVValidationError) as exc_info:
            await import_csv(seeded_db, upload(
                "Striker,STRI,A,Delhivery (2kg),active,2,1",
                "Striker,STRI,B,Bluedart,active,,2",
                "Striker,STRI,C,Ekart,inactive,,99999999999999999999",
            ))

        assert len(exc_info.value.errors) == 1
        assert exc_info.value.errors[0].startswith("Row 4: invalid priority")
        assert await seeded_db.get_carriers("STRI") == before


class TestFormatInfo:
    """Tests for csv_format_info."""

    @pytest.mark.asyncio
    async def test_describes_columns_and_sample(self, seeded_db):
        info = await csv_format_info(seeded_db)

        assert info["expected_columns"] == EXPORT_COLUMNS
        assert "account_code" in info["required_columns"]
        assert info["total_carriers"] == 5
        assert len(info["sample_data"]) == 3
        assert info["sample_data"][0]["account_code"] == "ACME"
        assert info["validation_rules"]

    @pytest.mark.asyncio
    async def test_empty_database(self, db):
        info = await csv_format_info(db)

        assert info["total_carriers"] == 0
        assert info["sample_data"] == []
