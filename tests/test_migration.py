import pytest
from sqlalchemy import select

from src.backend.crm.migration import (
    MigrationError,
    extract_images,
    extract_reviews,
    migrate_company_data,
    normalize_review_date,
)
from src.backend.crm.models import Company, Intake, MediaItem, Review

from conftest import TENANT_ID


@pytest.fixture
def garage_doc(current_doc):
    current_doc["hero"]["logo_url"] = "https://cdn.example.com/logo.png"
    current_doc["photo_gallery"] = {
        "image_1": {"url": "https://cdn.example.com/bay.jpg"},
        "image_2": "https://cdn.example.com/walkthrough.mp4",
    }
    current_doc["reviews"] = [
        {"author": "Maria G.", "rating": 5, "text": "Fixed my brakes fast", "date": "2024-03-01"},
        {"author": "No Text", "rating": 4, "text": "<>"},
    ]
    current_doc["testimonials"] = [{"client_name": "Sam P.", "quote": "Fair price", "date": 1_700_000_000}]
    return current_doc


def test_intake_fields_are_flattened_from_document(db, make_company, garage_doc):
    company = make_company(garage_doc)

    body = migrate_company_data(db, TENANT_ID, company.id, user_id="u1")

    assert body["success"] is True
    intake = db.scalars(select(Intake).where(Intake.company_id == company.id)).one()
    assert intake.business_name == "Joe's Garage"
    assert intake.phone == "+13055550100"
    assert intake.email == "joe@example.com"
    assert intake.website == "https://joesgarage.example.com"
    assert (intake.tag1, intake.tag2, intake.tag3) == ("ASE Certified", "Family Owned", None)
    assert intake.package_type == "discover"
    assert "tag1" in body["migrated_fields"]
    assert db.get(Company, company.id).website == "https://joesgarage.example.com"


def test_company_values_win_over_document(db, make_company, garage_doc):
    company = make_company(garage_doc, phone="305-000-0000", plan="verified")
    migrate_company_data(db, TENANT_ID, company.id)
    intake = db.scalars(select(Intake).where(Intake.company_id == company.id)).one()
    assert intake.phone == "305-000-0000"
    assert intake.package_type == "verified"


def test_media_is_extracted_with_logo_first(db, make_company, garage_doc):
    company = make_company(garage_doc)

    body = migrate_company_data(db, TENANT_ID, company.id, user_id="u1")

    assert body["media_saved"] == 4
    media = {m.file_url: m for m in db.scalars(select(MediaItem).where(MediaItem.company_id == company.id))}
    logo = media["https://cdn.example.com/logo.png"]
    assert (logo.category, logo.priority, logo.internal_tags) == ("logo", 100, ["Logo"])
    assert media["https://cdn.example.com/walkthrough.mp4"].file_type == "video"
    assert media["https://cdn.example.com/bay.jpg"].uploaded_by_id == "u1"


def test_rerun_does_not_duplicate_media_or_reviews(db, make_company, garage_doc):
    company = make_company(garage_doc)
    migrate_company_data(db, TENANT_ID, company.id)

    body = migrate_company_data(db, TENANT_ID, company.id)

    assert (body["media_saved"], body["reviews_saved"]) == (0, 0)
    assert len(db.scalars(select(Review).where(Review.company_id == company.id)).all()) == 2


def test_reviews_are_collected_from_every_source(db, make_company, garage_doc):
    company = make_company(garage_doc)

    body = migrate_company_data(db, TENANT_ID, company.id)

    assert body["reviews_saved"] == 2
    reviews = {r.author: r for r in db.scalars(select(Review).where(Review.company_id == company.id))}
    assert reviews["Maria G."].date == "2024-03-01T00:00:00+00:00"
    assert reviews["Sam P."].platform == "Other"
    assert reviews["Sam P."].rating == 5


def test_company_without_document_gets_an_intake(db, make_company):
    company = make_company(None, phone="305-555-0199")
    body = migrate_company_data(db, TENANT_ID, company.id)
    assert (body["media_saved"], body["reviews_saved"]) == (0, 0)
    intake = db.scalars(select(Intake).where(Intake.company_id == company.id)).one()
    assert intake.phone == "305-555-0199"


def test_unknown_company_is_404(db):
    with pytest.raises(MigrationError) as excinfo:
        migrate_company_data(db, TENANT_ID, "missing")
    assert excinfo.value.status_code == 404


def test_featured_reviews_and_google_reviews():
    document = {
        "google_reviews": [{"author_name": "Lee", "snippet": "Quick and honest", "rating": "4"}],
        "featured_reviews": {"items": [{"reviewer": "Ana", "excerpt": "Great shop", "source": "Yelp"}]},
    }
    found = {r["author"]: r for r in extract_reviews(document)}
    assert found["Lee"]["rating"] == 4
    assert found["Lee"]["platform"] == "Google"
    assert found["Ana"]["platform"] == "Yelp"


def test_photo_list_gallery():
    images = extract_images({"photo_gallery": [{"src": "https://a/1.jpg"}, {"url": "<>"}]})
    assert [i["url"] for i in images] == ["https://a/1.jpg"]


def test_numeric_review_dates_are_epoch_seconds():
    assert normalize_review_date(0) == "1970-01-01T00:00:00+00:00"
    assert normalize_review_date("2024-05-01T10:00:00Z") == "2024-05-01T10:00:00Z"


def test_company_plan_is_left_alone(db, make_company, garage_doc):
    company = make_company(garage_doc, plan="premium")

    migrate_company_data(db, TENANT_ID, company.id)

    intake = db.scalars(select(Intake).where(Intake.company_id == company.id)).one()
    assert intake.package_type == "discover"
    db.expire_all()
    assert db.get(Company, company.id).plan == "premium"
