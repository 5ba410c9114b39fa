"""Except-case selection.

Cases are checked in declaration order. Inside a case, predicates are
evaluated in order: an abstaining predicate is skipped, a passing one
moves on, and the first failing one makes the case fire. The first case
to fire wins and no later case is looked at.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from specmock.models import ExceptCase
from specmock.predicates import PredicateError, Verdict

logger = logging.getLogger(__name__)


def case_fires(case: ExceptCase, scope: Mapping[str, Any]) -> bool:
    """Return True if any predicate of ``case`` fails against ``scope``.

    A predicate that raises counts as failing, and the error is logged.
    """
    for predicate in case.compiled:
        try:
            verdict = predicate.verdict(scope)
        except PredicateError as exc:
            logger.warning("Except case %r: predicate error treated as failure: %s", case.name, exc)
            return True
        if verdict is Verdict.FAIL:
            logger.debug("Except case %r fired on %r", case.name, predicate.source)
            return True
    return False


def select_override(cases: Iterable[ExceptCase], scope: Mapping[str, Any]) -> ExceptCase | None:
    """Return the first case that fires, or None to keep the default response.

    Args:
        cases: Except cases in declaration order.
        scope: Predicate scope built from the request context.

    Returns:
        The winning ExceptCase, or None.
    """
    for case in cases:
        if case_fires(case, scope):
            return case
    return None
