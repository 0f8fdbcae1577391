# tests/test_request_form.py
from __future__ import annotations

import sys
from pathlib import Path
from datetime import date

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from practica.catalogs import Modality, ReferenceData
from practica.request_form import ApprenticeIdentity, RequestDraft
from practica.section_definitions import audit_missing_fields
from practica.utils import AppSchema


def make_draft() -> RequestDraft:
    reference = ReferenceData(None)  # type: ignore[arg-type]
    reference.modalities = [Modality(1, 'Contrato de aprendizaje'), Modality(2, 'Proyecto productivo')]
    return RequestDraft(reference, None, ApprenticeIdentity(5, 'Laura Pérez'))  # type: ignore[arg-type]


def test_identity_from_session_record() -> None:
    stored = {
        'id': '5', 'name': 'Laura', 'first_last_name': 'Pérez', 'second_last_name': 'Gil',
        'type_identification': 'CC', 'number_identificacion': 1020304050, 'email': 'laura@sena.edu.co',
    }
    identity = ApprenticeIdentity.from_storage(stored)
    assert identity == ApprenticeIdentity(
        apprentice_id=5, full_name='Laura Pérez Gil', document_type='CC',
        document_number='1020304050', email='laura@sena.edu.co', phone='',
    )

def test_identity_without_id_is_missing() -> None:
    assert ApprenticeIdentity.from_storage({'name': 'Laura'}) is None
    assert ApprenticeIdentity.from_storage(None) is None

def test_modality_change_clears_dates_in_the_same_call() -> None:
    draft = make_draft()
    draft.set_modality(1)
    draft.contract.set_start_date(date(2025, 1, 15))
    draft.contract.set_end_date(date(2025, 7, 10))

    draft.set_modality(2)

    form_data = draft.form_data()
    assert form_data[AppSchema.CONTRACT_START.key] is None
    assert form_data[AppSchema.CONTRACT_END.key] is None
    assert draft.selected_modality() == Modality(2, 'Proyecto productivo')

def test_fresh_draft_reports_every_required_field() -> None:
    draft = make_draft()
    missing = {f.key for f in audit_missing_fields(draft.form_data())}
    expected = {
        AppSchema.REGIONAL.key, AppSchema.CENTER.key, AppSchema.HEADQUARTERS.key,
        AppSchema.PROGRAM.key, AppSchema.COHORT.key, AppSchema.MODALITY.key,
        AppSchema.PDF_FILE.key, AppSchema.TERMS.key,
        AppSchema.Enterprise.NAME.key, AppSchema.Boss.PHONE.key, AppSchema.HumanTalent.EMAIL.key,
    }
    assert expected <= missing
    assert AppSchema.APPRENTICE.key not in missing, "The identity is present"
    assert AppSchema.CONTRACT_START.key not in missing, "Dates are only required for the contract modality"
    assert AppSchema.Enterprise.SELECT.key not in missing, "Parties start in create mode"

def test_reset_keeps_identity() -> None:
    draft = make_draft()
    draft.selection.set_regional(1)
    draft.set_modality(1)
    draft.set_terms_accepted(True)

    draft.reset()

    assert draft.state.regional_id == 0
    assert not draft.contract.window.required
    assert not draft.terms_accepted
    assert draft.apprentice is not None and draft.apprentice.apprentice_id == 5
