"""
SQL Knowledge Store - Durable Tier over the Medical Knowledge Tables

SQLAlchemy implementation of KnowledgeStore over the four knowledge tables:

    medical_icd10_codes          → DiagnosisCode
    medical_cpt_codes            → ProcedureCode
    medical_cpt_icd10_mappings   → CodeMapping
    medical_icd10_markdown_docs  → KnowledgeDocument

PostgreSQL in production; any SQLAlchemy URL works (tests use SQLite).
Every SQLAlchemyError is re-raised as KnowledgeLookupFailure so the caching
decorator can degrade to empty results.

Usage:
    store = SQLKnowledgeStore("postgresql+psycopg2://user:pw@host/radorder_main")
    mapping = store.get_mapping("M54.16", "72148")

Author: Shubham Singh
Date: December 2025
"""

from typing import Any, Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy import Boolean, Column, Integer, String, Text, create_engine, func, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from clinical_validation.core.constants import SEARCH_RESULT_LIMIT
from clinical_validation.core.enums import KnowledgeDomain
from clinical_validation.core.exceptions import KnowledgeLookupFailure
from clinical_validation.core.models import (
    CodeMapping,
    DiagnosisCode,
    KnowledgeDocument,
    ProcedureCode,
)
from clinical_validation.knowledge.store import normalize_code, normalize_text_key, sort_mappings


Base = declarative_base()


# =============================================================================
# STAGE 1: ORM MODELS
# =============================================================================


class DiagnosisCodeRow(Base):
    __tablename__ = "medical_icd10_codes"

    icd10_code = Column(String(16), primary_key=True)
    description = Column(Text, nullable=False)
    category = Column(String(255), nullable=True, index=True)
    clinical_notes = Column(Text, nullable=True)
    # Comma-separated lists
    imaging_modalities = Column(Text, nullable=True)
    primary_imaging = Column(String(255), nullable=True)
    keywords = Column(Text, nullable=True)
    is_billable = Column(Boolean, nullable=False, default=True)

    def to_model(self) -> DiagnosisCode:
        return DiagnosisCode.from_dict(
            {
                "code": self.icd10_code,
                "description": self.description,
                "category": self.category,
                "clinical_notes": self.clinical_notes,
                "imaging_modalities": self.imaging_modalities,
                "primary_imaging": self.primary_imaging,
                "keywords": self.keywords,
                "is_billable": bool(self.is_billable),
            }
        )


class ProcedureCodeRow(Base):
    __tablename__ = "medical_cpt_codes"

    cpt_code = Column(String(16), primary_key=True)
    description = Column(Text, nullable=False)
    modality = Column(String(64), nullable=True, index=True)
    body_part = Column(String(128), nullable=True)
    category = Column(String(255), nullable=True, index=True)
    contrast_required = Column(Boolean, nullable=True)

    def to_model(self) -> ProcedureCode:
        return ProcedureCode(
            code=self.cpt_code,
            description=self.description,
            modality=self.modality,
            body_part=self.body_part,
            category=self.category,
            contrast_required=self.contrast_required,
        )


class CodeMappingRow(Base):
    __tablename__ = "medical_cpt_icd10_mappings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    icd10_code = Column(String(16), nullable=False, index=True)
    cpt_code = Column(String(16), nullable=False, index=True)
    appropriateness = Column(Integer, nullable=False)
    evidence_source = Column(String(255), nullable=True)
    refined_justification = Column(Text, nullable=True)

    def to_model(self) -> CodeMapping:
        return CodeMapping(
            diagnosis_code=self.icd10_code,
            procedure_code=self.cpt_code,
            appropriateness_level=int(self.appropriateness),
            evidence_level=self.evidence_source,
            justification=self.refined_justification,
        )


class KnowledgeDocumentRow(Base):
    __tablename__ = "medical_icd10_markdown_docs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    icd10_code = Column(String(16), nullable=False, index=True)
    title = Column(String(255), nullable=False, default="")
    category = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)

    def to_model(self) -> KnowledgeDocument:
        return KnowledgeDocument(
            code=self.icd10_code, title=self.title, content=self.content, category=self.category
        )


LIKE_ESCAPE = "\\"

_ROWS = {
    KnowledgeDomain.DIAGNOSIS: DiagnosisCodeRow,
    KnowledgeDomain.PROCEDURE: ProcedureCodeRow,
    KnowledgeDomain.MAPPING: CodeMappingRow,
    KnowledgeDomain.DOCUMENT: KnowledgeDocumentRow,
}


# =============================================================================
# STAGE 2: SQL STORE
# =============================================================================


class SQLKnowledgeStore:
    """
    Knowledge store backed by a relational database.

    What it does:
        Answers KnowledgeStore lookups with SQL queries. Code comparisons
        use upper() and text comparisons use lower(), so lookups are
        case-insensitive regardless of how rows were loaded.

    Example:
        >>> store = SQLKnowledgeStore("sqlite://")
        >>> store.create_schema()
        >>> store.get_by_code(KnowledgeDomain.DIAGNOSIS, "M54.5") is None
        True
    """

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None and not database_url:
            raise ValueError("database_url or engine is required")
        self._engine = engine or create_engine(database_url, pool_pre_ping=True)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        logger.info(f"SQLKnowledgeStore initialized | Dialect: {self._engine.dialect.name}")

    # =========================================================================
    # STAGE 3: SCHEMA AND SEEDING
    # =========================================================================

    def create_schema(self) -> None:
        """Create the knowledge tables if they do not exist."""
        Base.metadata.create_all(self._engine)

    def load_records(
        self,
        diagnosis_codes: Iterable[DiagnosisCode] = (),
        procedure_codes: Iterable[ProcedureCode] = (),
        mappings: Iterable[CodeMapping] = (),
        documents: Iterable[KnowledgeDocument] = (),
    ) -> None:
        """Insert knowledge records (used for seeding and tests)."""
        rows: List[Any] = []
        for dx in diagnosis_codes:
            rows.append(
                DiagnosisCodeRow(
                    icd10_code=dx.code,
                    description=dx.description,
                    category=dx.category,
                    clinical_notes=dx.clinical_notes,
                    imaging_modalities=",".join(dx.imaging_modalities),
                    primary_imaging=dx.primary_imaging,
                    keywords=",".join(dx.keywords),
                    is_billable=dx.is_billable,
                )
            )
        for px in procedure_codes:
            rows.append(
                ProcedureCodeRow(
                    cpt_code=px.code,
                    description=px.description,
                    modality=px.modality,
                    body_part=px.body_part,
                    category=px.category,
                    contrast_required=px.contrast_required,
                )
            )
        for m in mappings:
            rows.append(
                CodeMappingRow(
                    icd10_code=m.diagnosis_code,
                    cpt_code=m.procedure_code,
                    appropriateness=m.appropriateness_level,
                    evidence_source=m.evidence_level,
                    refined_justification=m.justification,
                )
            )
        for doc in documents:
            rows.append(
                KnowledgeDocumentRow(
                    icd10_code=doc.code, title=doc.title, category=doc.category, content=doc.content
                )
            )

        try:
            with self._session_factory.begin() as session:
                session.add_all(rows)
        except SQLAlchemyError as e:
            raise KnowledgeLookupFailure(
                "Failed to load knowledge records", operation="load_records", original_error=e
            )
        logger.info(f"Loaded {len(rows):,} knowledge rows")

    # =========================================================================
    # STAGE 4: LOOKUPS
    # =========================================================================

    def _query(self, operation: str, build):
        """Run build(session) in a read session, translating driver errors."""
        try:
            with self._session_factory() as session:
                return build(session)
        except SQLAlchemyError as e:
            raise KnowledgeLookupFailure(
                f"Knowledge database query failed: {operation}",
                operation=operation,
                original_error=e,
            )

    def get_by_code(self, domain: KnowledgeDomain, code: str) -> Optional[Any]:
        if domain == KnowledgeDomain.MAPPING:
            return None
        row_type = _ROWS[domain]
        key_column = _code_column(row_type)
        wanted = normalize_code(code)

        def build(session):
            row = session.query(row_type).filter(func.upper(key_column) == wanted).first()
            return row.to_model() if row is not None else None

        return self._query("get_by_code", build)

    def get_by_category(self, domain: KnowledgeDomain, category: str) -> List[Any]:
        row_type = _ROWS[domain]
        wanted = normalize_text_key(category)
        if domain == KnowledgeDomain.MAPPING:
            condition = func.lower(CodeMappingRow.evidence_source) == wanted
        elif domain == KnowledgeDomain.PROCEDURE:
            condition = or_(
                func.lower(ProcedureCodeRow.category) == wanted,
                func.lower(ProcedureCodeRow.modality) == wanted,
            )
        else:
            condition = func.lower(row_type.category) == wanted

        def build(session):
            return [row.to_model() for row in session.query(row_type).filter(condition).all()]

        return self._query("get_by_category", build)

    def get_mapping(self, diagnosis_code: str, procedure_code: str) -> Optional[CodeMapping]:
        dx, px = normalize_code(diagnosis_code), normalize_code(procedure_code)

        def build(session):
            row = (
                session.query(CodeMappingRow)
                .filter(func.upper(CodeMappingRow.icd10_code) == dx)
                .filter(func.upper(CodeMappingRow.cpt_code) == px)
                .first()
            )
            return row.to_model() if row is not None else None

        return self._query("get_mapping", build)

    def get_all_mappings_for_code(self, diagnosis_code: str) -> List[CodeMapping]:
        dx = normalize_code(diagnosis_code)

        def build(session):
            rows = (
                session.query(CodeMappingRow)
                .filter(func.upper(CodeMappingRow.icd10_code) == dx)
                .all()
            )
            return sort_mappings([row.to_model() for row in rows])

        return self._query("get_all_mappings_for_code", build)

    def search(
        self, domain: KnowledgeDomain, keyword: str, max_results: int = SEARCH_RESULT_LIMIT
    ) -> List[Any]:
        query = normalize_text_key(keyword)
        if not query:
            return []
        limit = min(max_results, SEARCH_RESULT_LIMIT)
        row_type = _ROWS[domain]
        pattern = f"%{_escape_like(query)}%"
        columns = _SEARCH_COLUMNS[domain]
        condition = or_(
            *[func.lower(column).like(pattern, escape=LIKE_ESCAPE) for column in columns]
        )

        def build(session):
            rows = (
                session.query(row_type)
                .filter(condition)
                .order_by(_code_column(row_type))
                .limit(limit)
                .all()
            )
            return [row.to_model() for row in rows]

        return self._query("search", build)

    def dispose(self) -> None:
        self._engine.dispose()


def _escape_like(term: str) -> str:
    """Make % and _ in a search term match literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _code_column(row_type):
    if row_type is ProcedureCodeRow:
        return ProcedureCodeRow.cpt_code
    return row_type.icd10_code


_SEARCH_COLUMNS: Dict[KnowledgeDomain, tuple] = {
    KnowledgeDomain.DIAGNOSIS: (DiagnosisCodeRow.description, DiagnosisCodeRow.keywords),
    KnowledgeDomain.PROCEDURE: (
        ProcedureCodeRow.description,
        ProcedureCodeRow.body_part,
        ProcedureCodeRow.modality,
    ),
    KnowledgeDomain.DOCUMENT: (KnowledgeDocumentRow.title, KnowledgeDocumentRow.content),
    KnowledgeDomain.MAPPING: (CodeMappingRow.refined_justification,),
}
