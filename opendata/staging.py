"""
Staging ingestors for the four NYC Open Data sources.

Each source has a mapper that turns one Socrata JSON record into a staging
row (keeping the untouched payload in ``raw_data``) and a natural-key check.
Rows without a usable key are dropped before insert; they are counted but
are not treated as errors.

Sources:
- PLUTO (tax lots)              -> pluto_raw      key: bbl
- DOF property valuations       -> valuations_raw key: bbl
- ACRIS master (deeds/mortgages) -> acris_raw     key: document_id
- HPD building registrations    -> hpd_raw        key: bbl or building_id
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Callable

from loguru import logger
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker

from opendata.batches import DEFAULT_BATCH_SIZE
from opendata.batches import BatchOutcome
from opendata.batches import write_batches
from opendata.bbl import borough_name
from opendata.bbl import create_bbl
from opendata.bbl import normalize_bbl
from opendata.models import AcrisRaw
from opendata.models import HpdRaw
from opendata.models import PlutoRaw
from opendata.models import ValuationRaw
from opendata.parsing import as_text
from opendata.parsing import now_utc
from opendata.parsing import parse_datetime
from opendata.parsing import parse_float
from opendata.parsing import parse_int


def _source_bbl(record: dict[str, Any], borough_key: str) -> str | None:
    supplied = normalize_bbl(record.get("bbl"))
    if supplied:
        return supplied
    if record.get(borough_key) and record.get("block") and record.get("lot"):
        return create_bbl(record.get(borough_key), record.get("block"), record.get("lot"))
    return None


def map_pluto_record(r: dict[str, Any]) -> dict[str, Any]:
    return {
        "bbl": _source_bbl(r, "borough"),
        "borough": as_text(r.get("borough")),
        "block": as_text(r.get("block")),
        "lot": as_text(r.get("lot")),
        "address": as_text(r.get("address")),
        "zip_code": as_text(r.get("zipcode")),
        "bldg_class": as_text(r.get("bldgclass")),
        "land_use": as_text(r.get("landuse")),
        "owner_name": as_text(r.get("ownername")),
        "num_floors": parse_float(r.get("numfloors")),
        "units_res": parse_int(r.get("unitsres")),
        "units_total": parse_int(r.get("unitstotal")),
        "lot_area": parse_int(r.get("lotarea")),
        "bldg_area": parse_int(r.get("bldgarea")),
        "res_area": parse_int(r.get("resarea")),
        "office_area": parse_int(r.get("officearea")),
        "retail_area": parse_int(r.get("retailarea")),
        "year_built": parse_int(r.get("yearbuilt")),
        "year_altered1": parse_int(r.get("yearalter1")),
        "year_altered2": parse_int(r.get("yearalter2")),
        "condo_no": as_text(r.get("condono")),
        "x_coord": parse_float(r.get("xcoord")),
        "y_coord": parse_float(r.get("ycoord")),
        "latitude": parse_float(r.get("latitude")),
        "longitude": parse_float(r.get("longitude")),
        "community_district": as_text(r.get("cd")),
        "zone_dist1": as_text(r.get("zonedist1")),
        "zone_dist2": as_text(r.get("zonedist2")),
        "overlay1": as_text(r.get("overlay1")),
        "overlay2": as_text(r.get("overlay2")),
        "spdist1": as_text(r.get("spdist1")),
        "spdist2": as_text(r.get("spdist2")),
        "assess_land": parse_int(r.get("assessland")),
        "assess_tot": parse_int(r.get("assesstot")),
        "exempt_land": parse_int(r.get("exemptland")),
        "exempt_tot": parse_int(r.get("exempttot")),
        "raw_data": r,
    }


def map_valuation_record(r: dict[str, Any]) -> dict[str, Any]:
    street = as_text(r.get("street_name"))
    house = as_text(r.get("housenum_lo"))
    return {
        "bbl": _source_bbl(r, "boro"),
        "borough": as_text(r.get("boro")),
        "block": as_text(r.get("block")),
        "lot": as_text(r.get("lot")),
        "tax_class": as_text(r.get("tc")),
        "building_class": as_text(r.get("bldg_class")),
        "owner_name": as_text(r.get("owner")),
        "address": f"{house} {street}" if house else street,
        "apt_no": as_text(r.get("aptno")),
        "zip_code": as_text(r.get("zip_code")),
        "assess_year": parse_int(r.get("year")) or now_utc().year,
        "land_value": parse_int(r.get("curavl_land")) or parse_int(r.get("avtot")),
        "total_value": parse_int(r.get("curavl_tot")) or parse_int(r.get("avtot")),
        "transitional_land": parse_int(r.get("curtxbl_land")),
        "transitional_total": parse_int(r.get("curtxbl_tot")),
        "new_land_value": parse_int(r.get("newavl_land")),
        "new_total_value": parse_int(r.get("newavl_tot")),
        "exemption_code_one": as_text(r.get("exempt_code_1")),
        "exemption_code_two": as_text(r.get("exempt_code_2")),
        "exemption_code_three": as_text(r.get("exempt_code_3")),
        "exemption_code_four": as_text(r.get("exempt_code_4")),
        "raw_data": r,
    }


def map_acris_record(r: dict[str, Any]) -> dict[str, Any]:
    # ACRIS master rows never carry a pre-built BBL.
    bbl = None
    if r.get("borough") and r.get("block") and r.get("lot"):
        bbl = create_bbl(r.get("borough"), r.get("block"), r.get("lot"))
    return {
        "document_id": as_text(r.get("document_id")),
        "record_type": "MASTER",
        "bbl": bbl,
        "borough": as_text(r.get("borough")),
        "block": as_text(r.get("block")),
        "lot": as_text(r.get("lot")),
        "doc_type": as_text(r.get("doc_type")),
        "doc_date": parse_datetime(r.get("document_date")),
        "recorded_at": parse_datetime(r.get("recorded_datetime")),
        "doc_amount": parse_float(r.get("document_amt")),
        "percent_transferred": parse_float(r.get("percent_trans")),
        "good_through_date": parse_datetime(r.get("good_through_date")),
        "street_number": as_text(r.get("street_number")),
        "street_name": as_text(r.get("street_name")),
        "unit": as_text(r.get("unit")),
        "raw_data": r,
    }


def map_hpd_record(r: dict[str, Any]) -> dict[str, Any]:
    boro_id = as_text(r.get("boroid"))
    return {
        "bbl": _source_bbl(r, "boroid"),
        "building_id": as_text(r.get("buildingid")),
        "registration_id": as_text(r.get("registrationid")),
        "boro_id": boro_id,
        "borough": borough_name(boro_id) or boro_id,
        "block": as_text(r.get("block")),
        "lot": as_text(r.get("lot")),
        "house_number": as_text(r.get("housenumber")),
        "street_name": as_text(r.get("streetname")),
        "zip_code": as_text(r.get("zip")),
        "registration_status": "Active" if r.get("registrationenddate") else "Inactive",
        "building_owner_name": as_text(r.get("ownername")) or as_text(r.get("corporationname")),
        "building_owner_phone": as_text(r.get("businessphone")),
        "building_owner_email": None,
        "agent_name": as_text(r.get("managementcompanyname")),
        "agent_phone": as_text(r.get("managementphone")),
        "agent_address": as_text(r.get("managementaddress")),
        "num_floors": parse_int(r.get("stories")),
        "num_apartments": parse_int(r.get("legalunits")),
        "num_legal_units": parse_int(r.get("legalclassa")),
        "total_violations": None,
        "open_violations": None,
        "total_complaints": None,
        "open_complaints": None,
        "last_inspection_date": None,
        "raw_data": r,
    }


def _has_bbl(row: dict[str, Any]) -> bool:
    return bool(row.get("bbl"))


def _has_document_id(row: dict[str, Any]) -> bool:
    return bool(row.get("document_id"))


def _has_bbl_or_building(row: dict[str, Any]) -> bool:
    return bool(row.get("bbl") or row.get("building_id"))


@dataclass(slots=True)
class IngestResult:
    source: str
    downloaded: int = 0
    filtered: int = 0
    written: int = 0
    outcomes: list[BatchOutcome] = field(default_factory=list)

    @property
    def failed_batches(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)


@dataclass(frozen=True)
class SourceIngestor:
    source: str
    model: type
    mapper: Callable[[dict[str, Any]], dict[str, Any]]
    has_key: Callable[[dict[str, Any]], bool]

    def map_records(self, records: list[dict[str, Any]]) -> tuple[list[dict[str, Any]], int]:
        """Map source records and drop the ones without a natural key."""
        rows: list[dict[str, Any]] = []
        filtered = 0
        for record in records:
            row = self.mapper(record)
            if self.has_key(row):
                rows.append(row)
            else:
                filtered += 1
        return rows, filtered

    def ingest(
        self,
        session_factory: sessionmaker[Session],
        records: list[dict[str, Any]],
        batch_size: int = DEFAULT_BATCH_SIZE,
        prepare: Callable[[list[dict[str, Any]]], None] | None = None,
    ) -> IngestResult:
        rows, filtered = self.map_records(records)
        if prepare is not None:
            prepare(rows)
        outcomes = write_batches(
            session_factory,
            self.model,
            rows,
            batch_size=batch_size,
            label=self.source,
        )
        result = IngestResult(
            source=self.source,
            downloaded=len(records),
            filtered=filtered,
            written=sum(o.written for o in outcomes),
            outcomes=outcomes,
        )
        logger.info(
            f"Imported {result.written} {self.source} records to staging "
            f"(downloaded={result.downloaded}, filtered={result.filtered}, "
            f"failed_batches={result.failed_batches})"
        )
        return result


PARCEL_INGESTOR = SourceIngestor("pluto", PlutoRaw, map_pluto_record, _has_bbl)
VALUATION_INGESTOR = SourceIngestor("valuations", ValuationRaw, map_valuation_record, _has_bbl)
TRANSACTION_INGESTOR = SourceIngestor("acris", AcrisRaw, map_acris_record, _has_document_id)
COMPLIANCE_INGESTOR = SourceIngestor("hpd", HpdRaw, map_hpd_record, _has_bbl_or_building)

INGESTORS = {
    ingestor.source: ingestor
    for ingestor in (PARCEL_INGESTOR, VALUATION_INGESTOR, TRANSACTION_INGESTOR, COMPLIANCE_INGESTOR)
}
