"""Tests for solving conic programs and their duals through cvxpy."""

import numpy as np
import pytest

from conicdual import ConicProgram, Dualizer, get_solver_ctx
from conicdual.interfaces.cvxpy_if import CVXPY_ctx, SolverError
from conicdual.utils.program_data import program_to_data


def _lp_program():
    """maximize x1 + 2*x2  s.t.  x1 + x2 <= 4,  x1 + 3*x2 <= 6,  x1 >= 1."""
    program = ConicProgram()
    x1, x2, s1, s2, s3 = (
        program.variable(program.create_nonnegative_orthant_cone().variable)
        for _ in range(5)
    )
    x1.objective_coefficient = -1.0
    x2.objective_coefficient = -2.0
    for terms, rhs in [
        ([(x1, 1.0), (x2, 1.0), (s1, 1.0)], 4.0),
        ([(x1, 1.0), (x2, 3.0), (s2, 2.0)], 6.0),
        ([(x1, 1.0), (s3, -1.0)], 1.0),
    ]:
        con = program.create_constraint()
        for var, coeff in terms:
            con.add_variable(var, coeff)
        con.constrained_value = rhs
    return program


def test_get_solver_ctx():
    ctx = get_solver_ctx()
    assert isinstance(ctx, CVXPY_ctx)
    assert ctx.solver == "CLARABEL"
    assert get_solver_ctx("SCS", {"eps": 1e-9}).options == {"eps": 1e-9}
    with pytest.raises(RuntimeError):
        get_solver_ctx("NOT_A_SOLVER")


def test_solve_lp():
    program = _lp_program()
    solution = get_solver_ctx("CLARABEL").solve(program)

    np.testing.assert_allclose(solution.value, -5.0, atol=1e-6)
    np.testing.assert_allclose(program.x, [3.0, 1.0, 0.0, 0.0, 2.0], atol=1e-6)
    np.testing.assert_allclose(program.objective_value(), -5.0, atol=1e-6)

    # Written-back multipliers satisfy A'y + s = c with s >= 0.
    data = program_to_data(program)
    y = np.array([con.lagrange for con in program.constraints])
    s = np.array([var.dual_value for var in program.variables])
    np.testing.assert_allclose(data.A.T @ y + s, data.c, atol=1e-6)
    assert np.all(s >= -1e-6)
    np.testing.assert_allclose(y, solution.y)
    np.testing.assert_allclose(s, solution.s)


def test_solve_second_order_cone():
    """minimize t  s.t.  u = 3,  w = 4,  t >= ||(u, w)||."""
    program = ConicProgram()
    soc = program.create_second_order_cone(3)
    t, u, w = (program.variable(i) for i in soc.variables)
    t.objective_coefficient = 1.0
    for var, rhs in [(u, 3.0), (w, 4.0)]:
        con = program.create_constraint()
        con.add_variable(var, 1.0)
        con.constrained_value = rhs

    solution = get_solver_ctx().solve(program)

    np.testing.assert_allclose(solution.value, 5.0, atol=1e-6)
    np.testing.assert_allclose(program.x, [5.0, 3.0, 4.0], atol=1e-6)
    s = np.array([var.dual_value for var in program.variables])
    assert s[0] >= np.linalg.norm(s[1:]) - 1e-6


def test_infeasible_program_raises():
    program = ConicProgram()
    x = program.variable(program.create_nonnegative_orthant_cone().variable)
    x.objective_coefficient = 1.0
    con = program.create_constraint()
    con.add_variable(x, 1.0)
    con.constrained_value = -1.0
    program.x = [7.0]

    with pytest.raises(SolverError):
        get_solver_ctx().solve(program)
    np.testing.assert_array_equal(program.x, [7.0])


def test_dualize_solve_check_in():
    program = _lp_program()
    dualizer = Dualizer(program)
    dualizer.check_out_program()
    dual_solution = get_solver_ctx().solve(dualizer.get_dual_program())
    dualizer.check_in_program()

    # Strong duality: the dual program's optimum is minus the primal one.
    np.testing.assert_allclose(dual_solution.value, 5.0, atol=1e-6)
    np.testing.assert_allclose(program.x, [3.0, 1.0, 0.0, 0.0, 2.0], atol=1e-5)

    expected = _lp_program()
    get_solver_ctx().solve(expected)
    np.testing.assert_allclose(program.x, expected.x, atol=1e-5)


def test_repeated_cycles():
    program = _lp_program()
    dualizer = Dualizer(program)
    ctx = get_solver_ctx()
    for _ in range(2):
        dualizer.check_out_program()
        ctx.solve(dualizer.get_dual_program())
        dualizer.check_in_program()
        np.testing.assert_allclose(program.x, [3.0, 1.0, 0.0, 0.0, 2.0], atol=1e-5)


def test_rescaled_slack_solved_at_nonzero_value():
    """minimize -x  s.t.  x + 2*s = 4,  x + t = 3."""
    program = ConicProgram()
    x, s, t = (
        program.variable(program.create_nonnegative_orthant_cone().variable)
        for _ in range(3)
    )
    x.objective_coefficient = -1.0
    for terms, rhs in [([(x, 1.0), (s, 2.0)], 4.0), ([(x, 1.0), (t, 1.0)], 3.0)]:
        con = program.create_constraint()
        for var, coeff in terms:
            con.add_variable(var, coeff)
        con.constrained_value = rhs

    dualizer = Dualizer(program)
    dualizer.check_out_program()
    get_solver_ctx().solve(dualizer.get_dual_program())
    dualizer.check_in_program()

    np.testing.assert_allclose(program.x, [3.0, 0.5, 0.0], atol=1e-5)
