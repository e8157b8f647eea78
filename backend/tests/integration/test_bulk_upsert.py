"""Integration tests for bulk translation upsert."""

from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sitecms.core.exceptions import TransactionConflictError, ValidationError
from sitecms.core.redis import CacheClient
from sitecms.modules.content.models import ContentElement, ContentTranslation
from sitecms.modules.content.translation_service import TranslationService
from sitecms.modules.localization.models import Language
from tests.fixtures import ContentTranslationFactory, persist


def _item(element: ContentElement, language: Language, content: str, **extra: object) -> dict:
    return {
        "content": content,
        "content_element": str(element.id),
        "language": str(language.id),
        **extra,
    }


async def _contents(db_session: AsyncSession) -> dict[tuple, str]:
    result = await db_session.execute(select(ContentTranslation))
    return {
        (t.content_element_id, t.language_id): t.content for t in result.scalars().all()
    }


@pytest.mark.integration
class TestBulkUpsert:
    """Tests for bulk create/update semantics."""

    async def test_creates_all_items(
        self,
        translation_service: TranslationService,
        db_session: AsyncSession,
        heading: ContentElement,
        paragraph: ContentElement,
        english: Language,
        german: Language,
    ) -> None:
        items = [
            _item(heading, english, "Welcome"),
            _item(heading, german, "Willkommen"),
            _item(paragraph, english, "Body"),
        ]

        result = await translation_service.bulk_upsert_translations(items)

        assert result.success is True
        assert result.created == 3
        assert result.updated == 0
        assert result.errors == []
        assert result.message == "Successfully processed 3 translations: 3 created, 0 updated"
        assert len(await _contents(db_session)) == 3

    async def test_resubmission_is_idempotent(
        self,
        translation_service: TranslationService,
        db_session: AsyncSession,
        heading: ContentElement,
        english: Language,
        german: Language,
    ) -> None:
        items = [_item(heading, english, "Welcome"), _item(heading, german, "Willkommen")]

        await translation_service.bulk_upsert_translations(items)
        before = await _contents(db_session)
        result = await translation_service.bulk_upsert_translations(items)

        assert (result.created, result.updated) == (0, 2)
        assert await _contents(db_session) == before

    async def test_existing_pair_is_updated(
        self,
        translation_service: TranslationService,
        db_session: AsyncSession,
        english_heading: ContentTranslation,
        heading: ContentElement,
        english: Language,
    ) -> None:
        result = await translation_service.bulk_upsert_translations(
            [_item(heading, english, "Hello", metadata={"source": "import"})]
        )

        assert (result.created, result.updated) == (0, 1)
        current = await translation_service.get_translation_by_id(english_heading.id)
        assert current.content == "Hello"
        assert current.metadata == {"source": "import"}

    async def test_partial_failure_reports_indexes(
        self,
        translation_service: TranslationService,
        db_session: AsyncSession,
        heading: ContentElement,
        paragraph: ContentElement,
        english: Language,
    ) -> None:
        missing_element = uuid4()
        items = [
            _item(heading, english, "Title"),
            {
                "content": "Ghost",
                "content_element": str(missing_element),
                "language": str(english.id),
            },
            {"content": "", "content_element": str(paragraph.id), "language": str(english.id)},
            _item(paragraph, english, "Body"),
        ]

        result = await translation_service.bulk_upsert_translations(items)

        assert result.success is True
        assert (result.created, result.updated) == (2, 0)
        assert [e.index for e in result.errors] == [2, 3]
        assert str(missing_element) in result.errors[0].reason
        assert "content" in result.errors[1].reason
        assert result.message == "Processed 2 translations with 2 errors: 2 created, 0 updated"
        assert len(await _contents(db_session)) == 2

    async def test_unknown_language_reason(
        self,
        translation_service: TranslationService,
        heading: ContentElement,
        english: Language,
    ) -> None:
        missing_language = uuid4()
        items = [
            _item(heading, english, "Title"),
            {"content": "x", "content_element": str(heading.id), "language": str(missing_language)},
        ]

        result = await translation_service.bulk_upsert_translations(items)

        assert result.errors[0].index == 2
        assert result.errors[0].reason == f"Language {missing_language} not found"

    async def test_repeated_pair_last_item_wins(
        self,
        translation_service: TranslationService,
        db_session: AsyncSession,
        heading: ContentElement,
        english: Language,
    ) -> None:
        result = await translation_service.bulk_upsert_translations(
            [_item(heading, english, "First"), _item(heading, english, "Second")]
        )

        assert (result.created, result.updated) == (1, 1)
        assert list((await _contents(db_session)).values()) == ["Second"]

    async def test_no_valid_item_raises(
        self,
        translation_service: TranslationService,
        db_session: AsyncSession,
        english: Language,
    ) -> None:
        items = [
            {"content": "x", "content_element": str(uuid4()), "language": str(english.id)},
            {"content": "x", "content_element": "not-a-uuid", "language": str(english.id)},
        ]

        with pytest.raises(ValidationError) as exc_info:
            await translation_service.bulk_upsert_translations(items)

        assert [e["index"] for e in exc_info.value.errors] == [1, 2]
        assert await _contents(db_session) == {}

    async def test_inactive_flag_is_applied(
        self,
        translation_service: TranslationService,
        heading: ContentElement,
        english: Language,
    ) -> None:
        await translation_service.bulk_upsert_translations(
            [_item(heading, english, "Hidden", is_active=False)]
        )

        current = await translation_service.get_translation(heading.id, english.id)
        assert current.is_active is False


@pytest.mark.integration
class TestBulkUpsertById:
    """Items carrying an id target that record."""

    async def test_update_by_id_moves_pair(
        self,
        translation_service: TranslationService,
        english_heading: ContentTranslation,
        heading: ContentElement,
        german: Language,
    ) -> None:
        result = await translation_service.bulk_upsert_translations(
            [_item(heading, german, "Willkommen", id=str(english_heading.id))]
        )

        assert (result.created, result.updated) == (0, 1)
        current = await translation_service.get_translation_by_id(english_heading.id)
        assert current.language_id == german.id
        assert current.content == "Willkommen"

    async def test_unknown_id(
        self,
        translation_service: TranslationService,
        heading: ContentElement,
        english: Language,
    ) -> None:
        ghost = uuid4()
        items = [
            _item(heading, english, "Title"),
            _item(heading, english, "Other", id=str(ghost)),
        ]

        result = await translation_service.bulk_upsert_translations(items)

        assert result.created == 1
        assert result.errors[0].index == 2
        assert result.errors[0].reason == f"Translation with ID {ghost} not found for update"

    async def test_id_onto_pair_of_another_record(
        self,
        translation_service: TranslationService,
        db_session: AsyncSession,
        english_heading: ContentTranslation,
        heading: ContentElement,
        english: Language,
        german: Language,
    ) -> None:
        german_heading = ContentTranslationFactory(
            content="Willkommen", content_element_id=heading.id, language_id=german.id
        )
        await persist(db_session, german_heading)

        result = await translation_service.bulk_upsert_translations(
            [
                _item(heading, english, "Moved", id=str(german_heading.id)),
                _item(heading, german, "Still here", id=str(german_heading.id)),
            ]
        )

        assert result.updated == 1
        assert [e.index for e in result.errors] == [1]
        assert "already exists" in result.errors[0].reason
        contents = await _contents(db_session)
        assert contents[(heading.id, english.id)] == "Welcome"
        assert contents[(heading.id, german.id)] == "Still here"


@pytest.mark.integration
class TestBulkUpsertChunking:
    """Chunked processing inside one transaction."""

    async def test_items_span_chunks(
        self,
        db_session: AsyncSession,
        cache: CacheClient,
        heading: ContentElement,
        paragraph: ContentElement,
        english: Language,
        german: Language,
    ) -> None:
        service = TranslationService(db_session, cache=cache, batch_size=2)
        items = [
            _item(heading, english, "Title"),
            _item(heading, german, "Titel"),
            _item(paragraph, english, "Body"),
            _item(heading, english, "Title v2"),
            _item(paragraph, german, "Text"),
        ]

        result = await service.bulk_upsert_translations(items)

        assert (result.created, result.updated) == (4, 1)
        contents = await _contents(db_session)
        assert len(contents) == 4
        assert contents[(heading.id, english.id)] == "Title v2"

    async def test_error_indexes_are_global(
        self,
        db_session: AsyncSession,
        heading: ContentElement,
        english: Language,
    ) -> None:
        service = TranslationService(db_session, batch_size=2)
        items = [
            _item(heading, english, "A"),
            _item(heading, english, "B"),
            {"content": "C", "content_element": "bad", "language": str(english.id)},
        ]

        result = await service.bulk_upsert_translations(items)

        assert [e.index for e in result.errors] == [3]

    async def test_too_many_items(
        self, db_session: AsyncSession, heading: ContentElement, english: Language
    ) -> None:
        service = TranslationService(db_session, max_items=2)
        items = [_item(heading, english, str(n)) for n in range(3)]

        with pytest.raises(ValidationError, match="At most 2"):
            await service.bulk_upsert_translations(items)


@pytest.mark.integration
class TestBulkUpsertConsistency:
    """Cache and transaction behaviour of bulk upsert."""

    async def test_cached_reads_see_new_content(
        self,
        translation_service: TranslationService,
        english_heading: ContentTranslation,
        heading: ContentElement,
        english: Language,
    ) -> None:
        current = await translation_service.get_translation(heading.id, english.id)
        assert current.content == "Welcome"
        listed = await translation_service.get_translations_by_language(english.id)
        assert [t.content for t in listed] == ["Welcome"]

        await translation_service.bulk_upsert_translations([_item(heading, english, "Hello")])

        current = await translation_service.get_translation(heading.id, english.id)
        assert current.content == "Hello"
        listed = await translation_service.get_translations_by_language(english.id)
        assert [t.content for t in listed] == ["Hello"]

    async def test_concurrent_writer_rolls_back_whole_batch(
        self,
        translation_service: TranslationService,
        monkeypatch: pytest.MonkeyPatch,
        db_session: AsyncSession,
        english_heading: ContentTranslation,
        paragraph: ContentElement,
        english: Language,
    ) -> None:
        """A pair created after the lookup collides on flush."""
        heading_id, paragraph_id = english_heading.content_element_id, paragraph.id
        english_id = english.id

        async def _nothing_stored(*_: object) -> tuple[dict, dict]:
            return {}, {}

        monkeypatch.setattr(translation_service, "_load_existing", _nothing_stored)
        items = [
            {"content": "Body", "content_element": str(paragraph_id), "language": str(english_id)},
            {"content": "Hello", "content_element": str(heading_id), "language": str(english_id)},
        ]

        with pytest.raises(TransactionConflictError) as exc_info:
            await translation_service.bulk_upsert_translations(items)

        assert exc_info.value.status_code == 409
        assert await _contents(db_session) == {(heading_id, english_id): "Welcome"}
