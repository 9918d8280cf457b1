"""
Directory Kernel v1.0 — Wire Codec, Migration, Stats and Search Tests

Run:  python -m directory_kernel.test_wire
"""

from __future__ import annotations

import copy
import sys

from directory_kernel.domain_key import extract_domain, is_legacy_key, to_key
from directory_kernel.migration import migrate_legacy_keys, repair_structure
from directory_kernel.search import search
from directory_kernel.stats import DirectoryStats, compute_stats
from directory_kernel.validation import (
    ValidationError,
    parse_job_roles,
    validate_registration,
)
from directory_kernel.wire import DecodeError, decode_directory, encode_directory


def _header(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


def _document() -> dict:
    """Two colleges as they sit in the store, with a few rough edges."""
    return {
        "iitb_ac_in": {
            "name": "IIT Bombay",
            "domain": "iitb.ac.in",
            "createdAt": "2025-07-01T08:00:00.000Z",
            "students": [
                {
                    "id": 1, "name": "Asha", "email": "asha@iitb.ac.in",
                    "linkedin": "https://linkedin.com/in/asha",
                    "collegeDomain": "iitb.ac.in",
                    "selections": [
                        {"companyName": "Google", "selectedAt": "2025-08-02T00:00:00.000Z"},
                        {"companyName": "Ghost Corp", "selectedAt": "2025-08-03T00:00:00.000Z"},
                    ],
                    "registeredAt": "2025-07-01T08:00:00.000Z",
                    "avatar": "a.png",
                },
                {
                    "id": 2, "name": "Ravi", "email": "ravi@iitb.ac.in",
                    "linkedin": "https://linkedin.com/in/ravi",
                    "collegeDomain": "iitb.ac.in",
                    "registeredAt": "2025-07-02T08:00:00.000Z",
                },
            ],
            "companies": {
                "0": {
                    "id": 10, "name": "Google", "addedBy": 1,
                    "selectedStudents": [1, 2],
                    "addedAt": "2025-08-01T00:00:00.000Z",
                    "jobRoles": ["SWE"],
                },
            },
        },
        "nitt_edu": {
            "name": "NIT Trichy",
            "domain": "nitt.edu",
            "createdAt": "2025-07-05T08:00:00.000Z",
            "students": [
                {
                    "id": 3, "name": "Meera", "email": "meera@nitt.edu",
                    "linkedin": "https://linkedin.com/in/meera",
                    "collegeDomain": "nitt.edu", "selections": [],
                    "registeredAt": "2025-07-05T08:00:00.000Z",
                },
            ],
        },
    }


# ══════════════════════════════════════════════════════════════
# Codec
# ══════════════════════════════════════════════════════════════

def test_01_domain_key_codec() -> None:
    _header("Test 01 -- Domain key codec")
    assert to_key("iitb.ac.in") == "iitb_ac_in"
    assert to_key(to_key("iitb.ac.in")) == "iitb_ac_in"
    assert to_key("a.b") == to_key("a_b")
    assert is_legacy_key("nitt.edu") and not is_legacy_key("nitt_edu")
    assert extract_domain("x@y@college.edu") == "college.edu"
    assert extract_domain("no-at-sign") is None
    print("  [PASS]")


def test_02_decode_merges_both_selection_views() -> None:
    _header("Test 02 -- Decode builds one selection relation")
    state = decode_directory(_document())
    college = state.colleges["iitb_ac_in"]

    assert [c.name for c in college.companies] == ["Google"]
    assert college.selections[(1, 10)] == "2025-08-02T00:00:00.000Z"
    # Ravi only appears in selectedStudents, so the visit time stands in
    assert college.selections[(2, 10)] == "2025-08-01T00:00:00.000Z"
    asha = college.find_student(1)
    assert [s.company_name for s in asha.detached_selections] == ["Ghost Corp"]
    assert state.colleges["nitt_edu"].companies == []
    print("  [PASS]")


def test_03_encode_derives_both_views() -> None:
    _header("Test 03 -- Encode derives both views and keeps unknown data")
    doc = encode_directory(decode_directory(_document()))
    iitb = doc["iitb_ac_in"]

    google = iitb["companies"][0]
    assert google["selectedStudents"] == [1, 2]
    assert google["jobRoles"] == ["SWE"]
    assert "visitDate" not in google and "totalSelections" not in google

    asha, ravi = iitb["students"]
    assert [s["companyName"] for s in asha["selections"]] == ["Google", "Ghost Corp"]
    assert ravi["selections"] == [
        {"companyName": "Google", "selectedAt": "2025-08-01T00:00:00.000Z"}
    ]
    assert asha["avatar"] == "a.png"
    assert doc["nitt_edu"]["companies"] == []

    # a second pass changes nothing
    assert encode_directory(decode_directory(doc)) == doc
    print("  [PASS]")


def test_04_decode_rejects_garbage() -> None:
    _header("Test 04 -- Decode rejects non-object colleges")
    assert decode_directory(None).is_empty()
    assert decode_directory({}).is_empty()
    try:
        decode_directory({"x_edu": "not a college"})
    except DecodeError:
        print("  [PASS]")
    else:
        raise AssertionError("expected DecodeError")


# ══════════════════════════════════════════════════════════════
# Migration / repair
# ══════════════════════════════════════════════════════════════

def test_05_migrate_legacy_keys() -> None:
    _header("Test 05 -- Legacy dotted keys are rewritten")
    original = {"iitb.ac.in": {"name": "IIT Bombay"}, "nitt_edu": {"name": "NIT Trichy"}}
    snapshot = copy.deepcopy(original)
    migrated, rewritten = migrate_legacy_keys(original)

    assert list(migrated) == ["iitb_ac_in", "nitt_edu"]
    assert rewritten == ["iitb.ac.in"]
    assert original == snapshot, "input must not be mutated"

    _, none = migrate_legacy_keys(migrated)
    assert none == []
    print("  [PASS]")


def test_06_repair_structure() -> None:
    _header("Test 06 -- Missing arrays are added")
    doc = _document()
    repaired, fixes = repair_structure(doc)
    assert repaired["nitt_edu"]["companies"] == []
    assert repaired["iitb_ac_in"]["students"][1]["selections"] == []
    assert len(fixes) == 2, fixes
    assert "companies" not in doc["nitt_edu"]

    _, again = repair_structure(repaired)
    assert again == []
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Stats / search / validation
# ══════════════════════════════════════════════════════════════

def test_07_compute_stats() -> None:
    _header("Test 07 -- Aggregate statistics")
    stats = compute_stats(_document())
    assert stats == DirectoryStats(colleges=2, students=3, companies=1)
    assert compute_stats(None) == DirectoryStats()
    assert DirectoryStats.from_dict(stats.to_dict()) == stats
    print("  [PASS]")


def test_08_search_modes() -> None:
    _header("Test 08 -- College and company search")
    state = decode_directory(_document())

    colleges = search(state, "iit", "college")
    assert [key for key, _ in colleges] == ["iitb_ac_in"]

    companies = search(state, "GOO", "company")
    assert len(companies) == 1
    assert companies[0].college_key == "iitb_ac_in"
    assert [c.name for c in companies[0].companies] == ["Google"]

    assert search(state, "", "college") == []
    assert search(state, "zzz", "company") == []
    print("  [PASS]")


def test_09_registration_validation() -> None:
    _header("Test 09 -- Registration validation")
    validate_registration("a@x.edu", "A", "https://linkedin.com/in/a")
    cases = [
        (("", "A", "https://linkedin.com/in/a"), "form"),
        (("not-an-email", "A", "https://linkedin.com/in/a"), "email"),
        (("a@x.edu", "A", "https://example.com/a"), "linkedin"),
    ]
    for args, field in cases:
        try:
            validate_registration(*args)
        except ValidationError as e:
            assert e.field == field, (args, e.field)
        else:
            raise AssertionError(f"expected ValidationError for {args}")

    assert parse_job_roles(" SDE , , Analyst ") == ["SDE", "Analyst"]
    assert parse_job_roles(" , ") is None
    print("  [PASS]")


# ══════════════════════════════════════════════════════════════
# Runner
# ══════════════════════════════════════════════════════════════

def main() -> None:
    tests = [
        test_01_domain_key_codec,
        test_02_decode_merges_both_selection_views,
        test_03_encode_derives_both_views,
        test_04_decode_rejects_garbage,
        test_05_migrate_legacy_keys,
        test_06_repair_structure,
        test_07_compute_stats,
        test_08_search_modes,
        test_09_registration_validation,
    ]
    results = []
    for fn in tests:
        try:
            fn()
            results.append(True)
        except Exception as e:
            print(f"\n[ERROR] {fn.__name__}: {e}")
            import traceback
            traceback.print_exc()
            results.append(False)

    passed = sum(results)
    total = len(results)
    print(f"\n{'='*60}")
    print(f"  RESULTS: {passed}/{total} tests passed")
    print(f"{'='*60}")
    sys.exit(0 if all(results) else 1)


if __name__ == "__main__":
    main()
