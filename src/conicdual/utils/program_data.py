from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp

from conicdual.program import ConeType, ConicProgram


@dataclass(frozen=True)
class ProgramData:
    """Matrix form of a ``ConicProgram``.

    Bundles ``minimize c'x s.t. Ax = b`` together with the variable indices
    of each cone, in the layout cvxpy's conic solver interfaces describe
    cone dimensions with.
    """

    A: sp.csc_array  # (num_constraints, num_variables)
    b: np.ndarray
    c: np.ndarray
    nonneg_idx: np.ndarray
    soc_idx: list[np.ndarray]  # apex first in each cone
    dims: dict[str, int | list[int]]


def program_to_data(program: ConicProgram) -> ProgramData:
    """Export a conic program to sparse matrix form.

    Columns of ``A`` and entries of ``c`` follow ``program.index``, rows of
    ``A`` and entries of ``b`` follow constraint ids.

    This function is pure: it does **not** mutate ``program``.

    Args:
        program: The conic program to export.

    Returns:
        A ``ProgramData`` whose ``dims`` has the keys ``"z"`` (number of
        equality rows), ``"l"`` (number of nonnegative variables) and
        ``"q"`` (list of second-order cone sizes).
    """
    m, n = program.num_constraints, program.num_variables

    rows, cols, vals = [], [], []
    for con in program.constraints:
        for var in con.variables():
            rows.append(con.id)
            cols.append(program.index(var))
            vals.append(con.coefficient(var))
    A = sp.csc_array(
        (np.array(vals, dtype=np.float64), (np.array(rows, dtype=np.int64), np.array(cols, dtype=np.int64))),
        shape=(m, n),
    )
    b = np.array([con.constrained_value for con in program.constraints], dtype=np.float64)
    c = np.zeros(n)
    for var in program.variables:
        c[program.index(var)] = var.objective_coefficient

    nonneg_idx = np.array(
        [program.index(program.variable(k.variable)) for k in program.nonnegative_orthant_cones()],
        dtype=np.int64,
    )
    soc_idx = [
        np.array([program.index(program.variable(i)) for i in k.variables], dtype=np.int64)
        for k in program.second_order_cones()
    ]
    dims = {
        "z": m,
        ConeType.NONNEGATIVE_ORTHANT.value: len(nonneg_idx),
        ConeType.SECOND_ORDER.value: [len(idx) for idx in soc_idx],
    }
    return ProgramData(A, b, c, nonneg_idx, soc_idx, dims)
