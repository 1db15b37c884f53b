"""cvxpy solver interface for conic programs.

Solves a ``ConicProgram``::

    minimize    c'x
    subject to  Ax = b
                x in K

through cvxpy and writes the solution back in the conventions the
``Dualizer`` reads: ``LinearConstraint.lagrange`` holds ``y`` and
``Variable.dual_value`` holds ``s`` where ``A'y + s = c`` and ``s`` lies in
the dual cone of K.
"""

import logging
from dataclasses import dataclass

import cvxpy as cp
import numpy as np
import scipy.sparse as sp

from conicdual.program import ConicProgram
from conicdual.utils.program_data import ProgramData, program_to_data

log = logging.getLogger(__name__)


class SolverError(RuntimeError):
    pass


@dataclass
class ProgramSolution:
    status: str
    value: float
    x: np.ndarray
    y: np.ndarray
    s: np.ndarray


def _flatten_dual(dual_value) -> np.ndarray:
    # cvxpy reports SOC duals either stacked or as a (t, u) pair.
    if isinstance(dual_value, (list, tuple)):
        return np.hstack([np.asarray(part, dtype=np.float64).reshape(-1) for part in dual_value])
    return np.asarray(dual_value, dtype=np.float64).reshape(-1)


class CVXPY_ctx:
    solver: str
    options: dict

    def __init__(self, solver, options=None):
        self.solver = solver
        self.options = dict(options or {})

    def build_problem(self, data: ProgramData):
        n = data.c.shape[0]
        x = cp.Variable(n)
        eq_con = None
        nonneg_con = None
        constraints = []
        if data.A.shape[0] > 0:
            # Written as b == Ax so that the dual value is y in A'y + s = c.
            eq_con = cp.Constant(data.b) == cp.Constant(sp.csc_matrix(data.A)) @ x
            constraints.append(eq_con)
        if data.nonneg_idx.size > 0:
            nonneg_con = x[data.nonneg_idx] >= 0
            constraints.append(nonneg_con)
        soc_cons = [cp.SOC(x[idx[0]], x[idx[1:]]) for idx in data.soc_idx]
        constraints.extend(soc_cons)
        problem = cp.Problem(cp.Minimize(data.c @ x), constraints)
        return problem, x, eq_con, nonneg_con, soc_cons

    def solve(self, program: ConicProgram) -> ProgramSolution:
        data = program_to_data(program)
        problem, x, eq_con, nonneg_con, soc_cons = self.build_problem(data)
        problem.solve(solver=self.solver, **self.options)
        log.debug("Solved conic program with %s: %s", self.solver, problem.status)
        if problem.status not in (cp.OPTIMAL, cp.OPTIMAL_INACCURATE):
            raise SolverError(f"{self.solver} failed with status={problem.status}")

        x_val = np.asarray(x.value, dtype=np.float64).reshape(-1)
        y = np.zeros(data.A.shape[0])
        if eq_con is not None:
            y = _flatten_dual(eq_con.dual_value)
        s = np.zeros(x_val.shape[0])
        if nonneg_con is not None:
            s[data.nonneg_idx] = _flatten_dual(nonneg_con.dual_value)
        for idx, con in zip(data.soc_idx, soc_cons, strict=True):
            s[idx] = _flatten_dual(con.dual_value)

        program.x = x_val
        for con in program.constraints:
            con.lagrange = float(y[con.id])
        for var in program.variables:
            var.dual_value = float(s[program.index(var)])

        return ProgramSolution(problem.status, float(problem.value), x_val, y, s)
