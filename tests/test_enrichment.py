import pytest

from conftest import batch, record
from salesboard.ingest.companies import CompanyMapper
from salesboard.ingest.models import normalize_product_name
from salesboard.logic.aggregation import aggregate_by_company
from salesboard.logic.enrichment import enrich_with_companies


@pytest.fixture()
def company_dir(tmp_path):
    (tmp_path / "Syngenta_Products.csv").write_text("Product Name\nAmistar\n  KARATE \n\n")
    (tmp_path / "Nova_Agri_TechProduct_Names.csv").write_text("Product\nNova Gold\n")
    return tmp_path


@pytest.mark.asyncio
async def test_mapper_loads_both_filename_patterns(company_dir, caplog):
    mapper = CompanyMapper()
    await mapper.load(["Syngenta", "Nova_Agri_Tech", "Rallis"], company_dir)
    assert mapper.list_companies() == ["Nova_Agri_Tech", "Syngenta"]
    assert mapper.company_for_product("  amistar") == "Syngenta"
    assert mapper.resolve(normalize_product_name("Karate")) == "Syngenta"
    assert mapper.resolve(normalize_product_name("Nova Gold")) == "Nova_Agri_Tech"
    assert mapper.products_for_company("Syngenta") == ["amistar", "karate"]
    assert mapper.products_for_company("Rallis") == []
    assert mapper.stats() == {"total_products": 3, "total_companies": 2}
    assert "Could not load products for Rallis" in caplog.text


@pytest.mark.asyncio
async def test_unreadable_company_file_logged_once(company_dir, caplog):
    (company_dir / "Rallis_Products.csv").write_bytes(b"Product\n\xff\xfeTaqat\n")
    mapper = CompanyMapper()
    await mapper.load(["Syngenta", "Rallis"], company_dir)
    assert mapper.list_companies() == ["Syngenta"]
    rallis = [r for r in caplog.records if "Rallis" in r.getMessage()]
    assert len(rallis) == 1
    assert "Could not load products for Rallis" in rallis[0].getMessage()


def test_enrichment_tags_records_in_place():
    mapper = CompanyMapper()
    mapper.add_products("Syngenta", ["Amistar"])
    batches = [batch("2025-12-01", [record("AMISTAR ", 1, 100), record("Urea", 5, 300)])]
    assert enrich_with_companies(batches, mapper) == 1
    amistar, urea = batches[0].records
    assert amistar.company == "Syngenta"
    assert urea.company is None

    assert enrich_with_companies(batches, mapper) == 1
    assert amistar.company == "Syngenta"

    companies = {c.company_name: c.total_amount for c in aggregate_by_company(batches)}
    assert companies == {"Unknown": 300, "Syngenta": 100}


def test_enrichment_accepts_any_resolver():
    class Fixed:
        def resolve(self, key):
            return "Adama" if key == "agil" else None

    batches = [batch("2025-12-01", [record("Agil", 1, 10)])]
    enrich_with_companies(batches, Fixed())
    assert batches[0].records[0].company == "Adama"
