"""Unit tests for StatementImportService."""

import asyncio
from datetime import date
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy.orm.exc import StaleDataError

from factories import category_id, parsed_transaction, parsing_upload, pending_upload, raw_transaction
from statement_import.core.exceptions import (
    AuthorizationError,
    CategoryResolutionError,
    ConcurrencyConflictError,
    ExtractionError,
    FileStorageError,
    InvalidStatusError,
    NoTransactionsError,
    NotFoundError,
    ParsingError,
    StatementImportError,
    TransactionCreationError,
    ValidationError,
)
from statement_import.domain import ImportStatus
from statement_import.services.statement_import import normalize_currency, statement_period

PDF = b"%PDF-1.4 statement"


class TestUpload:
    """Test the upload pipeline."""

    @pytest.mark.asyncio
    async def test_real_purchase_survives_and_boilerplate_is_dropped(
        self, service, upload_repo, categories, user_id, mock_db
    ):
        upload = await service.upload(PDF, "march.pdf", user_id)

        assert upload.status == ImportStatus.PENDING_REVIEW
        assert len(upload.parsed_transactions) == 1
        (line,) = upload.parsed_transactions
        assert line.description == "WALMART"
        assert line.amount == Decimal("42.10")
        assert line.suggested_category_id == category_id(categories, "Groceries")
        assert line.original_text == "03/14 WALMART $42.10"
        assert (upload.statement_month, upload.statement_year) == (3, 2025)

        assert upload_repo.uploads[upload.id] == upload
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pipeline_passes_data_between_steps(
        self, service, storage, extractor, parser, categories, user_id
    ):
        await service.upload(PDF, "march.pdf", user_id)

        storage.save.assert_awaited_once_with(PDF, "march.pdf", user_id)
        storage.read.assert_awaited_once_with(f"{user_id}/stored.pdf")
        extractor.extract.assert_awaited_once_with(b"%PDF-1.4 fake")
        parser.parse.assert_awaited_once_with(
            "03/14 WALMART $42.10\nPrevious Balance $120.00", categories
        )

    @pytest.mark.asyncio
    async def test_unresolved_category_uses_miscellaneous(self, service, parser, categories, user_id):
        parser.parse.return_value = [
            raw_transaction("Zzyzx Corp", "9.99", suggested_category_name="Qwzx Things")
        ]

        upload = await service.upload(PDF, "march.pdf", user_id)

        assert upload.parsed_transactions[0].suggested_category_id == category_id(
            categories, "Miscellaneous"
        )

    @pytest.mark.asyncio
    async def test_fallback_is_first_category_without_miscellaneous(
        self, service, parser, category_provider, categories, user_id
    ):
        without_misc = [c for c in categories if c.name != "Miscellaneous"]
        category_provider.available_categories.return_value = without_misc
        parser.parse.return_value = [raw_transaction("Zzyzx Corp", "9.99", suggested_category_name="")]

        upload = await service.upload(PDF, "march.pdf", user_id)

        assert upload.parsed_transactions[0].suggested_category_id == without_misc[0].id

    @pytest.mark.asyncio
    async def test_negative_amounts_become_magnitudes(self, service, parser, user_id):
        parser.parse.return_value = [raw_transaction("Target", "-25.00")]

        upload = await service.upload(PDF, "march.pdf", user_id)

        assert upload.parsed_transactions[0].amount == Decimal("25.00")

    @pytest.mark.asyncio
    async def test_currency_symbols_become_iso_codes(self, service, parser, user_id):
        """Test one line printed with a symbol does not fail the whole import."""
        parser.parse.return_value = [
            raw_transaction("WALMART", "42.10"),
            raw_transaction("TARGET", "19.99", currency="$"),
            raw_transaction("CAFE NERO", "4.50", currency="€"),
        ]

        upload = await service.upload(PDF, "march.pdf", user_id)

        assert upload.status == ImportStatus.PENDING_REVIEW
        assert [t.currency for t in upload.parsed_transactions] == ["USD", "USD", "EUR"]

    @pytest.mark.asyncio
    async def test_unrecognized_currency_uses_default(self, service, parser, user_id):
        parser.parse.return_value = [raw_transaction("TARGET", "19.99", currency="??")]

        with patch("statement_import.services.statement_import.settings.default_currency", "CAD"):
            upload = await service.upload(PDF, "march.pdf", user_id)

        assert upload.status == ImportStatus.PENDING_REVIEW
        assert upload.parsed_transactions[0].currency == "CAD"

    @pytest.mark.asyncio
    async def test_statement_period_uses_latest_transaction(self, service, parser, user_id):
        parser.parse.return_value = [
            raw_transaction("Target", "1.00", transaction_date=date(2025, 2, 27)),
            raw_transaction("Netflix", "1.00", transaction_date=date(2025, 3, 2)),
        ]

        upload = await service.upload(PDF, "march.pdf", user_id)

        assert (upload.statement_month, upload.statement_year) == (3, 2025)


class TestUploadValidation:
    """Input is rejected before anything is stored."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content,file_name,code",
        [
            (PDF, "statement.csv", "API_001"),
            (PDF, "", "VAL_001"),
            (b"", "statement.pdf", "API_003"),
        ],
    )
    async def test_invalid_input(self, service, storage, upload_repo, user_id, content, file_name, code):
        with pytest.raises(ValidationError) as exc_info:
            await service.upload(content, file_name, user_id)

        assert exc_info.value.error_code == code
        storage.save.assert_not_awaited()
        assert upload_repo.uploads == {}

    @pytest.mark.asyncio
    async def test_file_too_large(self, service, storage, user_id):
        with patch("statement_import.services.statement_import.settings.upload_max_size_mb", 1):
            with pytest.raises(ValidationError) as exc_info:
                await service.upload(b"x" * (1024 * 1024 + 1), "big.pdf", user_id)

        assert exc_info.value.error_code == "API_002"
        storage.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_failure_creates_no_import(self, service, storage, upload_repo, user_id, mock_db):
        storage.save.side_effect = OSError("disk full")

        with pytest.raises(FileStorageError) as exc_info:
            await service.upload(PDF, "march.pdf", user_id)

        assert exc_info.value.error_code == "STORAGE_001"
        assert upload_repo.uploads == {}
        mock_db.commit.assert_not_awaited()


class TestUploadFailures:
    """Failures after storage leave a Failed import behind."""

    def _only_upload(self, upload_repo):
        (upload,) = upload_repo.uploads.values()
        return upload

    @pytest.mark.asyncio
    async def test_extraction_failure(self, service, extractor, parser, upload_repo, user_id, mock_db):
        extractor.extract.side_effect = RuntimeError("no text")

        with pytest.raises(ExtractionError) as exc_info:
            await service.upload(PDF, "march.pdf", user_id)

        assert exc_info.value.error_code == "PARSE_001"
        failed = self._only_upload(upload_repo)
        assert failed.status == ImportStatus.FAILED
        assert failed.error_message
        assert failed.parsed_transactions == ()
        parser.parse.assert_not_awaited()
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_parsing_failure(self, service, parser, upload_repo, user_id):
        parser.parse.side_effect = RuntimeError("model unavailable")

        with pytest.raises(ParsingError) as exc_info:
            await service.upload(PDF, "march.pdf", user_id)

        assert exc_info.value.error_code == "PARSE_002"
        assert self._only_upload(upload_repo).status == ImportStatus.FAILED

    @pytest.mark.asyncio
    async def test_only_boilerplate_means_no_transactions(self, service, parser, upload_repo, user_id):
        parser.parse.return_value = [
            raw_transaction("Previous Balance", "120.00"),
            raw_transaction("Minimum Payment Due", "35.00"),
        ]

        with pytest.raises(NoTransactionsError):
            await service.upload(PDF, "march.pdf", user_id)

        failed = self._only_upload(upload_repo)
        assert failed.status == ImportStatus.FAILED
        assert failed.error_message == "We didn't find any purchases in this statement."

    @pytest.mark.asyncio
    async def test_no_categories_available(self, service, category_provider, upload_repo, user_id):
        category_provider.available_categories.return_value = []

        with pytest.raises(CategoryResolutionError) as exc_info:
            await service.upload(PDF, "march.pdf", user_id)

        assert exc_info.value.error_code == "PARSE_004"
        assert self._only_upload(upload_repo).status == ImportStatus.FAILED

    @pytest.mark.asyncio
    async def test_extraction_timeout(self, service, extractor, upload_repo, user_id):
        async def slow_extract(document):
            await asyncio.sleep(10)

        extractor.extract = slow_extract

        with patch("statement_import.services.statement_import.settings.extract_timeout_seconds", 0.01):
            with pytest.raises(ExtractionError):
                await service.upload(PDF, "march.pdf", user_id)

        assert self._only_upload(upload_repo).status == ImportStatus.FAILED

    @pytest.mark.asyncio
    async def test_cancellation_persists_nothing(self, service, parser, upload_repo, user_id, mock_db):
        parser.parse.side_effect = asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await service.upload(PDF, "march.pdf", user_id)

        assert upload_repo.uploads == {}
        mock_db.commit.assert_not_awaited()


class TestReview:
    """Test get, list, update and cancel."""

    @pytest.mark.asyncio
    async def test_get_by_id_checks_ownership(self, service, upload_repo, user_id):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)

        assert await service.get_by_id(upload.id, user_id) == upload

        with pytest.raises(AuthorizationError) as exc_info:
            await service.get_by_id(upload.id, uuid4())
        assert exc_info.value.error_code == "IMPORT_002"

    @pytest.mark.asyncio
    async def test_get_missing_import(self, service, user_id):
        with pytest.raises(NotFoundError) as exc_info:
            await service.get_by_id(uuid4(), user_id)
        assert exc_info.value.error_code == "IMPORT_001"

    @pytest.mark.asyncio
    async def test_list_only_returns_own_imports(self, service, upload_repo, user_id):
        mine = pending_upload(user_id)
        await upload_repo.add(mine)
        await upload_repo.add(pending_upload(uuid4()))

        assert await service.list_for_user(user_id) == [mine]

    @pytest.mark.asyncio
    async def test_update_categories(self, service, upload_repo, categories, user_id, mock_db):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)
        travel = category_id(categories, "Travel")
        first = upload.parsed_transactions[0]

        updated = await service.update_categories(upload.id, user_id, [(first.id, travel)])

        assert updated.parsed_transactions[0].effective_category_id == travel
        assert upload_repo.uploads[upload.id] == updated
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_short_circuits_on_first_invalid_line(
        self, service, upload_repo, categories, user_id, mock_db
    ):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)
        travel = category_id(categories, "Travel")
        first, second = upload.parsed_transactions

        with pytest.raises(NotFoundError) as exc_info:
            await service.update_categories(
                upload.id, user_id, [(first.id, travel), (uuid4(), travel), (second.id, travel)]
            )

        assert exc_info.value.error_code == "IMPORT_004"
        assert upload_repo.uploads[upload.id] == upload
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_category(self, service, upload_repo, user_id):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)

        with pytest.raises(ValidationError):
            await service.update_categories(
                upload.id, user_id, [(upload.parsed_transactions[0].id, uuid4())]
            )

    @pytest.mark.asyncio
    async def test_update_by_other_user(self, service, upload_repo, categories, user_id):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)

        with pytest.raises(AuthorizationError):
            await service.update_categories(
                upload.id, uuid4(), [(upload.parsed_transactions[0].id, categories[0].id)]
            )

    @pytest.mark.asyncio
    async def test_cancel(self, service, upload_repo, user_id):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)

        await service.cancel(upload.id, user_id)

        assert upload_repo.uploads[upload.id].status == ImportStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_confirmed_import_fails(self, service, upload_repo, user_id):
        confirmed, _ = pending_upload(user_id).confirm()
        await upload_repo.add(confirmed)

        with pytest.raises(InvalidStatusError):
            await service.cancel(confirmed.id, user_id)


class TestConfirm:
    """Test confirmation and ledger creation."""

    @pytest.mark.asyncio
    async def test_creates_one_ledger_row_per_line_in_order(
        self, service, upload_repo, ledger, user_id
    ):
        upload = pending_upload(user_id, lines=2)
        override = uuid4()
        upload = upload.update_transaction_category(upload.parsed_transactions[1].id, override)
        await upload_repo.add(upload)

        await service.confirm(upload.id, user_id)

        assert ledger.create.await_count == 2
        first_call, second_call = ledger.create.await_args_list
        first, second = upload.parsed_transactions
        assert first_call.kwargs == {
            "user_id": user_id,
            "amount": first.amount,
            "currency": "USD",
            "transaction_date": first.transaction_date,
            "description": first.description,
            "category_id": first.suggested_category_id,
            "source_key": f"{upload.id}:{first.id}",
        }
        assert second_call.kwargs["category_id"] == override
        assert second_call.kwargs["source_key"] == f"{upload.id}:{second.id}"

        assert upload_repo.uploads[upload.id].status == ImportStatus.CONFIRMED
        assert upload_repo.confirmations[upload.id]["status"] == "completed"
        assert upload_repo.confirmations[upload.id]["created_count"] == 2

    @pytest.mark.asyncio
    async def test_status_and_intent_committed_before_ledger(
        self, service, upload_repo, ledger, user_id, mock_db
    ):
        upload = pending_upload(user_id, lines=1)
        await upload_repo.add(upload)
        seen = {}

        async def create(**kwargs):
            seen["status"] = upload_repo.uploads[upload.id].status
            seen["intent"] = upload.id in upload_repo.confirmations
            seen["commits"] = mock_db.commit.await_count
            return True

        ledger.create.side_effect = create

        await service.confirm(upload.id, user_id)

        assert seen == {"status": ImportStatus.CONFIRMED, "intent": True, "commits": 1}
        assert mock_db.commit.await_count == 2

    @pytest.mark.asyncio
    async def test_confirm_from_wrong_status_touches_nothing(self, service, upload_repo, ledger, user_id):
        upload = parsing_upload(user_id)
        await upload_repo.add(upload)

        with pytest.raises(InvalidStatusError):
            await service.confirm(upload.id, user_id)

        ledger.create.assert_not_awaited()
        assert upload_repo.confirmations == {}

    @pytest.mark.asyncio
    async def test_confirm_twice_fails(self, service, upload_repo, ledger, user_id):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)
        await service.confirm(upload.id, user_id)

        with pytest.raises(InvalidStatusError):
            await service.confirm(upload.id, user_id)

        assert ledger.create.await_count == 2

    @pytest.mark.asyncio
    async def test_ledger_failure_is_loud(self, service, upload_repo, ledger, user_id, mock_db):
        upload = pending_upload(user_id, lines=2)
        await upload_repo.add(upload)
        ledger.create.side_effect = [True, RuntimeError("ledger down")]

        with pytest.raises(TransactionCreationError) as exc_info:
            await service.confirm(upload.id, user_id)

        assert exc_info.value.error_code == "CONFIRM_001"
        assert exc_info.value.http_status == 500
        assert upload_repo.uploads[upload.id].status == ImportStatus.CONFIRMED
        assert upload_repo.confirmations[upload.id]["status"] == "pending"
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retry_resumes_pending_confirmation(self, service, upload_repo, ledger, user_id):
        upload = pending_upload(user_id, lines=2)
        await upload_repo.add(upload)
        ledger.create.side_effect = [True, RuntimeError("ledger down")]
        with pytest.raises(TransactionCreationError):
            await service.confirm(upload.id, user_id)

        # First line already exists downstream; the ledger skips it by key.
        ledger.create.reset_mock()
        ledger.create.side_effect = [False, True]
        await service.retry_confirmation(upload.id, user_id)

        keys = [c.kwargs["source_key"] for c in ledger.create.await_args_list]
        assert keys == [f"{upload.id}:{t.id}" for t in upload.parsed_transactions]
        confirmation = upload_repo.confirmations[upload.id]
        assert confirmation["status"] == "completed"
        assert confirmation["attempts"] == 2
        assert confirmation["created_count"] == 1

    @pytest.mark.asyncio
    async def test_retry_with_nothing_pending(self, service, upload_repo, user_id):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)
        await service.confirm(upload.id, user_id)

        with pytest.raises(StatementImportError) as exc_info:
            await service.retry_confirmation(upload.id, user_id)

        assert exc_info.value.error_code == "CONFIRM_002"
        assert exc_info.value.http_status == 409

    @pytest.mark.asyncio
    async def test_retry_requires_confirmed_import(self, service, upload_repo, user_id):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)

        with pytest.raises(StatementImportError) as exc_info:
            await service.retry_confirmation(upload.id, user_id)

        assert exc_info.value.error_code == "CONFIRM_002"

    @pytest.mark.asyncio
    async def test_confirm_by_other_user(self, service, upload_repo, ledger, user_id):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)

        with pytest.raises(AuthorizationError):
            await service.confirm(upload.id, uuid4())

        ledger.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_write_is_a_retryable_conflict(self, service, upload_repo, ledger, user_id, mock_db):
        upload = pending_upload(user_id)
        await upload_repo.add(upload)
        mock_db.commit.side_effect = StaleDataError("version mismatch")

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await service.confirm(upload.id, user_id)

        assert exc_info.value.error_code == "DB_002"
        assert exc_info.value.http_status == 409
        mock_db.rollback.assert_awaited_once()
        ledger.create.assert_not_awaited()


class TestStatementPeriod:
    """Test statement period derivation."""

    def test_empty(self):
        assert statement_period([]) is None

    def test_latest_date_wins(self):
        upload = parsing_upload()
        lines = [
            parsed_transaction(upload, transaction_date=date(2024, 12, 30)),
            parsed_transaction(upload, transaction_date=date(2025, 1, 2)),
        ]
        assert statement_period(lines) == (1, 2025)


class TestNormalizeCurrency:
    """Test parser currency values are mapped to ISO codes."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("USD", "USD"),
            (" eur ", "EUR"),
            ("$", "USD"),
            ("us$", "USD"),
            ("C$", "CAD"),
            ("£", "GBP"),
            ("", None),
            (None, None),
            ("??", None),
            ("DOLLARS", None),
        ],
    )
    def test_normalize(self, value, expected):
        assert normalize_currency(value) == expected
