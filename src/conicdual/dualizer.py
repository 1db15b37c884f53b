"""Builds the dual of a conic program and maps its solution back.

Given a primal program::

    minimize    c'x
    subject to  Ax = b
                x >= 0

the dualizer checks out a second ``ConicProgram`` whose optimal Lagrange
multipliers and dual values are the optimal primal ``x``. Each primal
constraint gets one dual variable. It is nonnegative when the constraint
has a slack (a nonnegative variable with zero cost that appears in no
other constraint), otherwise it is the apex of a fresh 2-dimensional
second-order cone. Each non-slack primal variable gets one dual
constraint ``sum_i a_ij y_i - w_j = -c_j`` with ``w_j >= 0``. Slack
coefficients are absorbed by rescaling the slack's dual variable.

After the dual program is solved, ``check_in_program`` writes the dual
constraint multipliers (non-slack variables) and the dual variable dual
values (slacks) into the primal solution vector.
"""

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from conicdual.program import ConeType, ConicProgram, LinearConstraint, Variable

log = logging.getLogger(__name__)

_SUPPORTED_CONE_TYPES = frozenset({ConeType.NONNEGATIVE_ORTHANT})
_SLACK_SELECTIONS = ("first", "last")


class ProtocolViolationError(RuntimeError):
    """Raised when the checkout/checkin protocol is not followed."""


class DualizerState(enum.Enum):
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"


@dataclass
class SOCVariablePair:
    cone: int
    inner: int


class Dualizer:
    """Checks out the dual of a primal conic program and checks its solution in.

    The dualizer is either checked in or checked out. ``check_out_program``
    builds a fresh dual program, available from ``get_dual_program`` until
    ``check_in_program`` writes its solved multipliers and dual values into
    the primal solution vector. Calls out of order raise
    ``ProtocolViolationError`` before anything is modified.
    """

    SUPPORTED_CONE_TYPES = _SUPPORTED_CONE_TYPES

    def __init__(self, program: ConicProgram, options=None):
        options = dict(options or {})
        self.slack_selection = options.pop("slack_selection", "first")
        if self.slack_selection not in _SLACK_SELECTIONS:
            raise ValueError(
                f"Invalid slack_selection {self.slack_selection!r}; "
                f"expected one of {_SLACK_SELECTIONS}"
            )
        if options:
            raise ValueError(f"Unknown Dualizer options: {sorted(options)}")

        self._primal = program
        self._state = DualizerState.CHECKED_IN
        self._dual: ConicProgram | None = None

        # Index tables keyed by primal ids, valued by dual ids.
        self._primal_vars_to_dual_cons: dict[int, int] = {}
        self._primal_vars_to_dual_vars: dict[int, int] = {}
        self._primal_cons_to_dual_vars: dict[int, int] = {}
        self._var_pairs: dict[int, SOCVariablePair] = {}

    @staticmethod
    def supports_cone_types(types: Iterable[ConeType]) -> bool:
        return set(types) <= _SUPPORTED_CONE_TYPES

    @property
    def primal_program(self) -> ConicProgram:
        return self._primal

    @property
    def state(self) -> DualizerState:
        return self._state

    @property
    def checked_out(self) -> bool:
        return self._state is DualizerState.CHECKED_OUT

    def verify_checked_out(self):
        if self._state is not DualizerState.CHECKED_OUT:
            raise ProtocolViolationError("Dual program is not checked out.")

    def verify_checked_in(self):
        if self._state is not DualizerState.CHECKED_IN:
            raise ProtocolViolationError("Dual program is not checked in.")

    def get_dual_program(self) -> ConicProgram:
        self.verify_checked_out()
        return self._dual

    def check_out_program(self):
        self.verify_checked_in()
        primal = self._primal
        dual = ConicProgram()
        primal_vars_to_dual_cons = {}
        primal_vars_to_dual_vars = {}
        primal_cons_to_dual_vars = {}
        var_pairs = {}

        for con in primal.constraints:
            slack = self._find_slack(con)
            if slack is not None:
                dual_var = dual.variable(dual.create_nonnegative_orthant_cone().variable)
                dual_var.objective_coefficient = con.constrained_value
                primal_vars_to_dual_vars[slack.id] = dual_var.id
                primal_cons_to_dual_vars[con.id] = dual_var.id
            else:
                # Without a slack the multiplier is not bounded at zero by the
                # primal, so it is carried by the inner variable of an SOC.
                cone = dual.create_second_order_cone(2)
                pair = SOCVariablePair(cone.id, cone.apex)
                dual.variable(pair.inner).objective_coefficient = con.constrained_value
                var_pairs[con.id] = pair

        for cone in primal.nonnegative_orthant_cones():
            primal_var = primal.variable(cone.variable)
            if primal_var.id in primal_vars_to_dual_vars:
                continue
            dual_con = dual.create_constraint()
            dual_con.constrained_value = -primal_var.objective_coefficient
            primal_vars_to_dual_cons[primal_var.id] = dual_con.id
            dual_var = dual.variable(dual.create_nonnegative_orthant_cone().variable)
            dual_con.add_variable(dual_var, -1.0)
            dual_var.objective_coefficient = 0.0

        for con in primal.constraints:
            if con.id in primal_cons_to_dual_vars:
                dual_var = dual.variable(primal_cons_to_dual_vars[con.id])
            else:
                dual_var = dual.variable(var_pairs[con.id].inner)
            for var_id, coeff in con.terms.items():
                dual_con_id = primal_vars_to_dual_cons.get(var_id)
                if dual_con_id is not None:
                    dual.constraint(dual_con_id).add_variable(dual_var, coeff)

        # Rescales (and flips, for negative coefficients) so that every slack
        # has coefficient 1 in its constraint.
        for slack_id, dual_var_id in primal_vars_to_dual_vars.items():
            slack = primal.variable(slack_id)
            (con_id,) = slack.constraints
            coeff = primal.constraint(con_id).coefficient(slack)
            if coeff != 1.0:
                dual_var = dual.variable(dual_var_id)
                dual_var.objective_coefficient = dual_var.objective_coefficient / coeff
                for dual_con_id in list(dual_var.constraints):
                    dual_con = dual.constraint(dual_con_id)
                    scaled_value = dual_con.coefficient(dual_var) / coeff
                    dual_con.remove_variable(dual_var)
                    dual_con.add_variable(dual_var, scaled_value)

        self._dual = dual
        self._primal_vars_to_dual_cons = primal_vars_to_dual_cons
        self._primal_vars_to_dual_vars = primal_vars_to_dual_vars
        self._primal_cons_to_dual_vars = primal_cons_to_dual_vars
        self._var_pairs = var_pairs
        self._state = DualizerState.CHECKED_OUT
        log.debug(
            "Checked out dual program: %d slack constraints, %d SOC constraints, "
            "%d dual constraints",
            len(primal_cons_to_dual_vars),
            len(var_pairs),
            len(primal_vars_to_dual_cons),
        )

    def check_in_program(self):
        self.verify_checked_out()
        primal, dual = self._primal, self._dual
        x = primal.x

        for var_id, dual_con_id in self._primal_vars_to_dual_cons.items():
            x[primal.index(primal.variable(var_id))] = dual.constraint(dual_con_id).lagrange

        for var_id, dual_var_id in self._primal_vars_to_dual_vars.items():
            x[primal.index(primal.variable(var_id))] = dual.variable(dual_var_id).dual_value

        self._state = DualizerState.CHECKED_IN
        log.debug(
            "Checked in dual program into %d primal variables",
            len(self._primal_vars_to_dual_cons) + len(self._primal_vars_to_dual_vars),
        )

    def dual_constraint_for(self, var: Variable) -> LinearConstraint | None:
        """Dual constraint created for a non-slack primal variable."""
        self.verify_checked_out()
        dual_con_id = self._primal_vars_to_dual_cons.get(var.id)
        return None if dual_con_id is None else self._dual.constraint(dual_con_id)

    def dual_variable_for(self, var: Variable) -> Variable | None:
        """Dual variable standing for the constraint of a primal slack."""
        self.verify_checked_out()
        dual_var_id = self._primal_vars_to_dual_vars.get(var.id)
        return None if dual_var_id is None else self._dual.variable(dual_var_id)

    def dual_variable_for_constraint(self, con: LinearConstraint) -> Variable:
        self.verify_checked_out()
        if con.id in self._primal_cons_to_dual_vars:
            return self._dual.variable(self._primal_cons_to_dual_vars[con.id])
        return self._dual.variable(self._var_pairs[con.id].inner)

    def slack_variables(self) -> list[Variable]:
        self.verify_checked_out()
        return [self._primal.variable(i) for i in self._primal_vars_to_dual_vars]

    def _find_slack(self, con: LinearConstraint) -> Variable | None:
        # A zero coefficient cannot witness the sign of the multiplier.
        candidates = [
            v for v in con.variables() if self._is_slack(v) and con.coefficient(v) != 0.0
        ]
        if not candidates:
            return None
        if self.slack_selection == "last":
            return candidates[-1]
        return candidates[0]

    def _is_slack(self, var: Variable) -> bool:
        match self._primal.cone_of(var).type:
            case ConeType.NONNEGATIVE_ORTHANT:
                nonnegative = True
            case ConeType.SECOND_ORDER:
                nonnegative = False
        return (
            nonnegative
            and var.num_constraints() == 1
            and var.objective_coefficient == 0.0
        )
