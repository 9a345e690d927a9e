import pytest

from bodega.core.exceptions import InvalidTransitionError, PermissionDeniedError
from bodega.models.dispatch import AssignmentStatus
from bodega.schemas.workflow import (
    ContainerOption,
    DispatchCheckState,
    DispatchStep,
    FinalizeAction,
    LineStatus,
    NoticeLevel,
    PromptKind,
    Redirect,
    ToastVariant,
)
from bodega.workflows.dispatch_check import EVENT_DISPATCH_COMPLETED, DispatchCheckWorkflow, parse_quantity
from bodega.workflows.ports import CollectingFeedback
from fakes import (
    FakeDispatchStore,
    FakeDocuments,
    FakeMailer,
    FakeNotifier,
    FakePreferences,
    FakeReceipts,
    make_invoice,
)


class Harness:
    """A workflow wired to fakes, with the fakes kept at hand for assertions."""

    def __init__(self, actor, invoices, catalog, containers=None):
        self.documents = FakeDocuments(invoices)
        self.store = FakeDispatchStore(containers)
        self.notifier = FakeNotifier()
        self.mailer = FakeMailer()
        self.receipts = FakeReceipts()
        self.preferences = FakePreferences()
        self.feedback = CollectingFeedback()
        self.workflow = DispatchCheckWorkflow(
            DispatchCheckState(),
            actor,
            documents=self.documents,
            catalog=catalog,
            store=self.store,
            notifier=self.notifier,
            mailer=self.mailer,
            receipts=self.receipts,
            preferences=self.preferences,
            feedback=self.feedback,
        )

    @property
    def state(self):
        return self.workflow.state

    def item(self, line_id):
        return next(i for i in self.state.items if i.line_id == line_id)


@pytest.fixture
def harness(supervisor, fac_1001, catalog):
    return Harness(supervisor, {"FAC-1001": fac_1001}, catalog)


@pytest.fixture
def operator_harness(operator, fac_1001, catalog):
    return Harness(operator, {"FAC-1001": fac_1001}, catalog)


def test_parse_quantity_reads_leading_integer():
    assert parse_quantity("4") == 4
    assert parse_quantity(" 7 cajas") == 7
    assert parse_quantity("abc") == 0
    assert parse_quantity("") == 0
    assert parse_quantity(None) == 0


# ── Loading ─────────────────────────────────────────────────────────────────

async def test_select_document_enriches_lines_from_catalog(harness):
    await harness.workflow.start()
    await harness.workflow.select_document("FAC-1001")

    assert harness.state.step == DispatchStep.VERIFYING
    assert harness.state.current_document.client_name == "Ferretería El Clavo"
    assert [(i.item_code, i.barcode, i.required_quantity) for i in harness.state.items] == [
        ("A-100", "7701001", 5),
        ("B-200", "7702002", 3),
    ]
    assert harness.item(1).description == "Tornillo galvanizado 1/4"
    assert harness.workflow.progress.text == "0 de 2 líneas completadas"


async def test_unknown_document_returns_to_initial_with_toast(harness):
    await harness.workflow.select_document("FAC-404")
    assert harness.state.step == DispatchStep.INITIAL
    assert harness.state.is_busy is False
    assert harness.feedback.toasts[0].variant == ToastVariant.DESTRUCTIVE


async def test_erp_outage_is_reported_as_toast(harness):
    harness.documents.fail = True
    assert await harness.workflow.search_documents("FAC") == []
    assert harness.feedback.toasts[0].title == "Error de Búsqueda"

    await harness.workflow.select_document("FAC-1001")
    assert harness.state.step == DispatchStep.INITIAL


async def test_short_search_terms_do_not_reach_the_erp(harness):
    assert await harness.workflow.search_documents("FA") == []
    assert harness.documents.searches == []

    options = await harness.workflow.search_documents("1001")
    assert [o.value for o in options] == ["FAC-1001"]
    assert "Ferretería El Clavo" in options[0].label


async def test_deep_link_with_container_resolves_next_document(supervisor, fac_1001, catalog):
    h = Harness(
        supervisor,
        {"FAC-1001": fac_1001},
        catalog,
        containers=[ContainerOption(id=1, name="Ruta Norte"), ContainerOption(id=2, name="Ruta Sur")],
    )
    h.store.next_documents[1] = "FAC-1002"
    await h.workflow.start(doc_id="FAC-1001", container_id=1)

    assert h.state.current_document.container_id == 1
    assert h.state.next_document_id == "FAC-1002"
    assert [c.id for c in h.state.available_containers] == [2]


# ── Scanning and confirmation ───────────────────────────────────────────────

async def test_strict_scans_complete_a_line_without_prompt(harness):
    harness.workflow.state.is_strict_mode = True
    await harness.workflow.select_document("FAC-1001")
    for _ in range(5):
        await harness.workflow.scan("7701001")

    assert harness.item(1).verified_quantity == 5
    assert harness.item(1).status == LineStatus.EXACT
    assert harness.state.prompt is None
    assert harness.state.last_scanned_code == "A-100"

    await harness.workflow.scan("A-100")
    assert harness.item(1).verified_quantity == 5
    assert harness.state.notice.title == "Cantidad Completa"
    assert harness.state.notice.level == NoticeLevel.INFO


async def test_non_strict_scan_asks_for_confirmation(harness):
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.scan("b-200")

    prompt = harness.state.prompt
    assert (prompt.kind, prompt.line_id) == (PromptKind.LINE_COMPLETE, 2)
    assert harness.item(2).verified_quantity == 0

    await harness.workflow.resolve_prompt(True)
    assert harness.item(2).verified_quantity == 3
    assert harness.item(2).is_manual_override
    assert harness.workflow.progress.completed == 1


async def test_declining_confirmation_focuses_manual_entry(harness):
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.request_line_confirmation(1)
    await harness.workflow.resolve_prompt(False)
    assert harness.state.focus_line_id == 1
    assert harness.item(1).verified_quantity == 0


async def test_wrong_item_sets_notice(harness):
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.scan("9999")
    assert harness.state.notice.title == "Artículo Incorrecto"
    assert harness.state.last_scanned_code is None
    await harness.workflow.clear_notice()
    assert harness.state.notice is None


async def test_scan_outside_verifying_is_rejected(harness):
    with pytest.raises(InvalidTransitionError):
        await harness.workflow.scan("7701001")


# ── Manual entry ────────────────────────────────────────────────────────────

async def test_manual_quantity_never_decreases(harness):
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.commit_manual_quantity(1, "3")
    await harness.workflow.commit_manual_quantity(1, "2")

    assert harness.item(1).verified_quantity == 3
    assert harness.item(1).display_verified_quantity == "3"
    assert harness.state.notice.title == "Cantidad no Permitida"

    await harness.workflow.commit_manual_quantity(1, "abc")
    assert harness.item(1).verified_quantity == 3


async def test_manual_surplus_is_accepted_with_notice(harness):
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.set_manual_quantity_text(2, "5")
    assert harness.item(2).verified_quantity == 0

    await harness.workflow.commit_manual_quantity(2)
    assert harness.item(2).verified_quantity == 5
    assert harness.item(2).status == LineStatus.SURPLUS
    assert harness.state.notice.title == "Cantidad Excedida"
    assert harness.workflow.has_discrepancy


async def test_operator_cannot_override_or_switch_mode(operator_harness):
    h = operator_harness
    await h.workflow.select_document("FAC-1001")
    with pytest.raises(PermissionDeniedError):
        await h.workflow.commit_manual_quantity(1, "5")
    with pytest.raises(PermissionDeniedError):
        await h.workflow.set_strict_mode(True)
    with pytest.raises(PermissionDeniedError):
        await h.workflow.set_email_options([], external_email="cliente@correo.co")


async def test_strict_mode_is_remembered_per_user(harness, supervisor):
    await harness.workflow.set_strict_mode(True)
    assert harness.preferences.values[(supervisor.id, "dispatchCheckPrefs")] == {"is_strict_mode": True}

    harness.workflow.state = DispatchCheckState()
    await harness.workflow.start()
    assert harness.state.is_strict_mode is True


# ── Finalize ────────────────────────────────────────────────────────────────

async def test_finalize_exact_document(harness):
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.commit_manual_quantity(1, "5")
    await harness.workflow.commit_manual_quantity(2, "3")
    assert harness.workflow.is_verification_complete

    await harness.workflow.request_finalize()

    assert harness.state.step == DispatchStep.FINISHED
    assert harness.store.statuses == {"FAC-1001": AssignmentStatus.COMPLETED}
    [log] = harness.store.logs
    assert log.notes == "Acción: finish"
    assert [entry["verified_quantity"] for entry in log.items] == [5, 3]
    [(event, payload)] = harness.notifier.events
    assert event == EVENT_DISPATCH_COMPLETED and payload["document_id"] == "FAC-1001"
    assert harness.feedback.toasts[-1].title == "Verificación Finalizada"


async def test_zero_line_prompt_comes_before_discrepancy(harness):
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.commit_manual_quantity(2, "3")
    await harness.workflow.request_finalize()

    assert harness.state.prompt.kind == PromptKind.ZERO_LINES
    assert harness.store.logs == []

    await harness.workflow.resolve_prompt(True)
    assert harness.state.is_move_open
    assert harness.state.step == DispatchStep.VERIFYING


async def test_zero_line_prompt_declined_finalizes_with_discrepancy(harness):
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.request_finalize()
    await harness.workflow.resolve_prompt(False)

    assert harness.state.step == DispatchStep.FINISHED
    assert harness.store.statuses["FAC-1001"] == AssignmentStatus.DISCREPANCY


async def test_short_lines_require_discrepancy_confirmation(harness):
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.commit_manual_quantity(1, "4")
    await harness.workflow.commit_manual_quantity(2, "3")
    await harness.workflow.request_finalize()

    assert harness.state.prompt.kind == PromptKind.DISCREPANCY
    await harness.workflow.resolve_prompt(False)
    assert harness.state.step == DispatchStep.VERIFYING
    assert harness.store.logs == []

    await harness.workflow.request_finalize()
    await harness.workflow.resolve_prompt(True)
    assert harness.store.statuses["FAC-1001"] == AssignmentStatus.DISCREPANCY


async def _complete(h):
    await h.workflow.select_document("FAC-1001")
    await h.workflow.commit_manual_quantity(1, "5")
    await h.workflow.commit_manual_quantity(2, "3")


async def test_failed_log_keeps_verifying(harness):
    await _complete(harness)
    harness.store.fail_log = True
    await harness.workflow.request_finalize()

    assert harness.state.step == DispatchStep.VERIFYING
    assert harness.state.is_busy is False
    assert harness.feedback.toasts[-1].title == "Error al Finalizar"
    assert harness.notifier.events == []


async def test_side_effect_failures_after_log_still_finish(harness):
    await _complete(harness)
    harness.store.fail_status = True
    harness.mailer.fail = True
    await harness.workflow.set_email_options(["jefe@bodega.co"])
    await harness.workflow.request_finalize(FinalizeAction.EMAIL)

    assert harness.state.step == DispatchStep.FINISHED
    titles = [t.title for t in harness.feedback.toasts]
    assert "Error al Actualizar Ruta" in titles
    assert "Error al Enviar Correo" in titles
    assert titles[-1] == "Verificación Finalizada"


async def test_email_needs_a_recipient(harness):
    await _complete(harness)
    await harness.workflow.request_finalize(FinalizeAction.EMAIL)
    assert harness.state.step == DispatchStep.VERIFYING
    assert harness.feedback.toasts[-1].title == "Destinatarios Requeridos"


async def test_email_external_address_is_cc_when_internal_recipients_exist(harness):
    await _complete(harness)
    await harness.workflow.set_email_options(
        [" jefe@bodega.co", "jefe@bodega.co", ""], external_email="cliente@correo.co", body="Gracias"
    )
    await harness.workflow.request_finalize(FinalizeAction.EMAIL)

    [mail] = harness.mailer.sent
    assert (mail["to"], mail["cc"], mail["body"]) == (["jefe@bodega.co"], "cliente@correo.co", "Gracias")


async def test_email_external_only_goes_to_external(harness):
    await _complete(harness)
    await harness.workflow.set_email_options([], external_email="cliente@correo.co")
    await harness.workflow.request_finalize(FinalizeAction.EMAIL)
    assert harness.mailer.sent[0]["to"] == ["cliente@correo.co"]
    assert harness.mailer.sent[0]["cc"] == ""


async def test_pdf_action_renders_receipt(harness):
    await _complete(harness)
    await harness.workflow.request_finalize(FinalizeAction.PDF)
    assert harness.workflow.receipt_pdf.startswith(b"%PDF")
    assert harness.receipts.rendered == ["FAC-1001"]


# ── Navigation ──────────────────────────────────────────────────────────────

async def test_move_logs_partial_work_and_redirects(supervisor, fac_1001, catalog):
    h = Harness(supervisor, {"FAC-1001": fac_1001}, catalog, containers=[ContainerOption(id=1, name="Ruta Norte")])
    await h.workflow.select_document("FAC-1001", container_id=1)
    await h.workflow.commit_manual_quantity(1, "2")
    await h.workflow.move_to_container(2)

    assert h.store.moves == [("FAC-1001", 2)]
    assert h.store.statuses["FAC-1001"] == AssignmentStatus.PARTIAL
    [log] = h.store.logs
    assert [entry["item_code"] for entry in log.items] == ["A-100"]
    assert h.state.step == DispatchStep.INITIAL
    assert h.state.redirect == Redirect.CONTAINER_LIST
    assert h.state.current_document is None


async def test_move_without_container_is_refused(harness):
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.move_to_container(2)
    assert harness.store.moves == []
    assert harness.feedback.toasts[-1].title == "Error al Mover"
    assert harness.state.step == DispatchStep.VERIFYING


async def test_proceed_to_next_loads_following_document(supervisor, fac_1001, catalog):
    fac_1002 = make_invoice("FAC-1002", [(1, "B-200", 1)])
    h = Harness(supervisor, {"FAC-1001": fac_1001, "FAC-1002": fac_1002}, catalog)
    h.store.next_documents[1] = "FAC-1002"
    await h.workflow.select_document("FAC-1001", container_id=1)
    await h.workflow.commit_manual_quantity(1, "5")
    await h.workflow.commit_manual_quantity(2, "3")
    await h.workflow.request_finalize()

    await h.workflow.proceed_to_next()
    assert h.state.current_document.id == "FAC-1002"
    assert h.state.step == DispatchStep.VERIFYING


async def test_proceed_without_next_goes_back_to_list(harness):
    await harness.workflow.select_document("FAC-1001", container_id=1)
    await harness.workflow.commit_manual_quantity(1, "5")
    await harness.workflow.commit_manual_quantity(2, "3")
    await harness.workflow.request_finalize()
    await harness.workflow.proceed_to_next()

    assert harness.state.step == DispatchStep.INITIAL
    assert harness.state.redirect == Redirect.CONTAINER_LIST


async def test_go_back_without_container_returns_to_search(harness):
    harness.workflow.state.is_strict_mode = True
    await harness.workflow.select_document("FAC-1001")
    await harness.workflow.go_back()
    assert harness.state.step == DispatchStep.INITIAL
    assert harness.state.redirect is None
    assert harness.state.is_strict_mode is True
