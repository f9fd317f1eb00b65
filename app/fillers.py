from __future__ import annotations

from domain.models import FillReport, FormContext, JobPostingRef
from domain.ports import LoggerPort
from domain.services import infer_field_type


class ReportOnlyFormFiller:
    """
    Dry-run ``FormFillerPort`` used by the CLI.

    Enters nothing; reports which required fields are still empty so the
    attempt outcome shows what a real filler would have to cover.
    """

    def __init__(self, logger: LoggerPort) -> None:
        self._logger = logger

    async def fill(self, context: FormContext, job: JobPostingRef) -> FillReport:
        unfilled: list[str] = []
        for descriptor in context.fillable_fields:
            match = infer_field_type(descriptor)
            self._logger.info(
                "field_classified",
                key=descriptor.key,
                label=descriptor.best_label,
                field_type=match.field_type.value,
                confidence=match.confidence,
                required=descriptor.required,
            )
            if descriptor.required and not descriptor.value.strip():
                unfilled.append(descriptor.best_label or descriptor.key)
        return FillReport(filled=(), unfilled_required=tuple(unfilled))
