"""Tests for the table projection, search, sort and CSV export.

This module verifies:
- Cells follow visible columns in schema order, with N/A placeholders
- Search matches document names and any term value, case-insensitively
- Header clicks cycle ascending, descending, unsorted
- Export quotes data cells and mirrors the displayed rows
- Cached rows are invalidated by any store or registry change
"""

from termgrid.column import Column
from termgrid.document import DocumentStatus, Term
from termgrid.storage.memory import InMemoryDocumentStore, InMemorySchemaRegistry
from termgrid.view import SortDirection, SortSpec, ViewEngine, export_csv, matches, project

from tests.conftest import make_document

NAME = Column(id="employeeName", label="Employee Name", order=0)
SALARY = Column(id="salary", label="Salary", order=1)
REMOTE = Column(id="workLocation", label="Work Location", order=2, visible=False)
COLUMNS = [SALARY, REMOTE, NAME]


def term(value: str | None, excerpt: str | None = None) -> Term:
    return Term(value=value, excerpt=excerpt, confidence=0.9 if value else 0.0)


def contract(name: str, employee: str | None, salary: str | None, **extra: Term):
    terms = {"employeeName": term(employee), "salary": term(salary), **extra}
    return make_document(name, terms={k: v for k, v in terms.items() if v.value is not None or k in extra})


class TestProject:
    """The pure projection function."""

    def test_cells_follow_visible_schema_order(self):
        doc = contract("A.pdf", "Jane Doe", "$90k", workLocation=term("Remote"))

        rows = project(COLUMNS, [doc])

        assert [c.column_id for c in rows[0].cells] == ["employeeName", "salary"]
        assert rows[0].values() == ["Jane Doe", "$90k"]

    def test_missing_and_null_terms_show_placeholder(self):
        missing = make_document("A.pdf", terms={"employeeName": term("Jane Doe")})
        null = make_document("B.pdf", terms={"employeeName": term("John"), "salary": term(None, "No salary stated")})

        rows = project(COLUMNS, [missing, null])

        assert rows[0].values() == ["Jane Doe", "N/A"]
        assert rows[1].values() == ["John", "N/A"]
        assert rows[0].cells[1].term is None
        assert rows[1].cells[1].term is not None
        assert not rows[1].cells[1].available

    def test_custom_placeholder(self):
        doc = make_document("A.pdf")
        assert project([NAME], [doc], missing_value="-")[0].values() == ["-"]

    def test_drilldown_carries_excerpt(self):
        doc = make_document("A.pdf", terms={"salary": term("$90k", "Base salary of $90k per year")})

        cell = project([SALARY], [doc])[0].cells[0]

        assert cell.available
        assert cell.drilldown.term_label == "Salary"
        assert cell.drilldown.value == "$90k"
        assert cell.drilldown.excerpt == "Base salary of $90k per year"
        assert cell.drilldown.document_name == "A.pdf"

    def test_no_drilldown_without_excerpt(self):
        doc = make_document("A.pdf", terms={"salary": term("$90k")})
        assert project([SALARY], [doc])[0].cells[0].drilldown is None

    def test_error_and_processing_documents_are_rows(self):
        docs = [
            make_document("A.pdf", status=DocumentStatus.PROCESSING),
            make_document("B.pdf", status=DocumentStatus.ERROR, error_detail="boom"),
        ]
        rows = project(COLUMNS, docs)
        assert [r.document.display_name for r in rows] == ["A.pdf", "B.pdf"]
        assert rows[1].values() == ["N/A", "N/A"]


class TestSearch:
    """Free-text filtering."""

    def test_matches_term_value(self):
        doc = contract("A.pdf", "Jane Doe", "$90k")
        assert matches(doc, "90k")
        assert matches(doc, "JANE")
        assert not matches(doc, "120k")

    def test_matches_display_name(self):
        doc = contract("A.pdf", "Jane Doe", "$90k")
        assert matches(doc, "pdf")

    def test_filter_over_two_documents(self):
        docs = [contract("A.pdf", None, "$90k"), contract("B.pdf", None, "$70k")]

        assert [r.document.display_name for r in project(COLUMNS, docs, query="90k")] == ["A.pdf"]
        assert [r.document.display_name for r in project(COLUMNS, docs, query="pdf")] == ["A.pdf", "B.pdf"]

    def test_matches_hidden_column(self):
        """Search looks at every term, visible or not."""
        doc = contract("A.pdf", "Jane Doe", "$90k", workLocation=term("Remote"))
        assert [r.document.id for r in project(COLUMNS, [doc], query="remote")] == [doc.id]

    def test_empty_query_matches_everything(self):
        docs = [contract("A.pdf", "Jane", "1"), contract("B.pdf", "John", "2")]
        assert len(project(COLUMNS, docs, query="")) == 2

    def test_query_does_not_match_placeholder(self):
        doc = make_document("A.pdf")
        assert project(COLUMNS, [doc], query="N/A") == []


class TestSort:
    """Single-column sort and the three-state header cycle."""

    def test_cycle(self):
        spec = SortSpec()
        spec = spec.cycle("salary")
        assert (spec.column_id, spec.direction) == ("salary", SortDirection.ASC)
        spec = spec.cycle("salary")
        assert spec.direction is SortDirection.DESC
        spec = spec.cycle("salary")
        assert not spec.active

    def test_other_column_restarts_ascending(self):
        spec = SortSpec().cycle("salary").cycle("salary").cycle("employeeName")
        assert (spec.column_id, spec.direction) == ("employeeName", SortDirection.ASC)

    def test_sort_by_value_with_missing_first(self):
        docs = [
            contract("A.pdf", "Charlie", "1"),
            contract("B.pdf", "alice", "2"),
            make_document("C.pdf"),
            contract("D.pdf", "Bob", "3"),
        ]

        asc = project(COLUMNS, docs, sort=SortSpec(column_id="employeeName", direction=SortDirection.ASC))
        desc = project(COLUMNS, docs, sort=SortSpec(column_id="employeeName", direction=SortDirection.DESC))
        unsorted = project(COLUMNS, docs, sort=SortSpec())

        assert [r.document.display_name for r in asc] == ["C.pdf", "B.pdf", "D.pdf", "A.pdf"]
        assert [r.document.display_name for r in desc] == ["A.pdf", "D.pdf", "B.pdf", "C.pdf"]
        assert [r.document.display_name for r in unsorted] == ["A.pdf", "B.pdf", "C.pdf", "D.pdf"]

    def test_accented_values_sort_with_their_base_letter(self):
        """Émile sorts between Adam and Zoe, not after z."""
        docs = [contract("1.pdf", "Zoe", "1"), contract("2.pdf", "Émile", "2"), contract("3.pdf", "Adam", "3")]

        rows = project(COLUMNS, docs, sort=SortSpec(column_id="employeeName", direction=SortDirection.ASC))

        assert [r.values()[0] for r in rows] == ["Adam", "Émile", "Zoe"]

    def test_accent_breaks_ties_only(self):
        docs = [contract("1.pdf", "Eve", "1"), contract("2.pdf", "Ève", "2"), contract("3.pdf", "eve", "3")]

        rows = project(COLUMNS, docs, sort=SortSpec(column_id="employeeName", direction=SortDirection.ASC))

        assert [r.values()[0] for r in rows] == ["Eve", "eve", "Ève"]


class TestExport:
    """CSV serialization."""

    def test_header_and_quoted_placeholder(self):
        doc = make_document("A.pdf", terms={"employeeName": term("Jane Doe")})
        rows = project(COLUMNS, [doc])

        csv_text = export_csv(rows, COLUMNS)

        assert csv_text == 'DocumentLabel,Employee Name,Salary\n"A.pdf","Jane Doe","N/A"'

    def test_embedded_quotes_are_doubled(self):
        doc = make_document('The "Big" Deal.pdf', terms={"employeeName": term('Jane "JD" Doe')})
        csv_text = export_csv(project([NAME], [doc]), [NAME])
        assert csv_text.splitlines()[1] == '"The ""Big"" Deal.pdf","Jane ""JD"" Doe"'

    def test_no_rows_gives_header_only(self):
        assert export_csv([], COLUMNS, document_label_header="Document") == "Document,Employee Name,Salary"


class TestViewEngine:
    """Stateful view over live stores."""

    async def _engine_with(self, registry: InMemorySchemaRegistry, store: InMemoryDocumentStore, *docs):
        for doc in docs:
            await store.create_pending(doc.model_copy(update={"status": DocumentStatus.PROCESSING}))
            await store.record_success(doc.id, doc.terms)
        return ViewEngine(registry, store)

    async def test_search_and_export_follow_state(
        self, registry: InMemorySchemaRegistry, store: InMemoryDocumentStore
    ):
        engine = await self._engine_with(
            registry,
            store,
            contract("A.pdf", "Jane Doe", "$90k"),
            contract("B.docx", "John Roe", "$120k"),
        )

        engine.search("90k")
        rows = await engine.rows()

        assert [r.document.display_name for r in rows] == ["A.pdf"]
        lines = (await engine.export()).splitlines()
        assert len(lines) == 2
        assert lines[0].startswith("DocumentLabel,Employee Name,Position/Title,")
        assert lines[1].startswith('"A.pdf","Jane Doe"')

    async def test_click_header_cycles(self, registry: InMemorySchemaRegistry, store: InMemoryDocumentStore):
        engine = await self._engine_with(
            registry,
            store,
            contract("A.pdf", "Bob", "1"),
            contract("B.pdf", "Alice", "2"),
        )

        engine.click_header("employeeName")
        assert [r.document.display_name for r in await engine.rows()] == ["B.pdf", "A.pdf"]
        engine.click_header("employeeName")
        assert [r.document.display_name for r in await engine.rows()] == ["A.pdf", "B.pdf"]
        spec = engine.click_header("employeeName")
        assert not spec.active
        assert [r.document.display_name for r in await engine.rows()] == ["A.pdf", "B.pdf"]

    async def test_cache_invalidated_by_store_change(
        self, registry: InMemorySchemaRegistry, store: InMemoryDocumentStore
    ):
        doc = contract("A.pdf", "Jane Doe", "$90k")
        engine = await self._engine_with(registry, store, doc)
        first = await engine.rows()

        await store.merge_term(doc.id, "salary", term("$95k"))
        second = await engine.rows()

        assert first[0].cells[4].display == "$90k"
        assert second[0].cells[4].display == "$95k"

    async def test_cache_invalidated_by_registry_change(
        self, registry: InMemorySchemaRegistry, store: InMemoryDocumentStore
    ):
        engine = await self._engine_with(registry, store, contract("A.pdf", "Jane Doe", "$90k"))
        assert len((await engine.rows())[0].cells) == 17

        await registry.set_visibility("salary", False)

        cells = (await engine.rows())[0].cells
        assert len(cells) == 16
        assert "salary" not in [c.column_id for c in cells]
        assert len(await engine.visible_columns()) == 16

    async def test_stats(self, registry: InMemorySchemaRegistry, store: InMemoryDocumentStore):
        engine = await self._engine_with(registry, store, contract("A.pdf", "Jane", "1"))
        await store.create_pending(make_document("B.pdf", status=DocumentStatus.PROCESSING))
        failed = make_document("C.pdf", status=DocumentStatus.PROCESSING)
        await store.create_pending(failed)
        await store.record_failure(failed.id, "boom")

        stats = await engine.stats()

        assert (stats.total, stats.completed, stats.processing, stats.error, stats.uploading) == (3, 1, 1, 1, 0)
