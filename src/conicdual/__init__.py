"""
conicdual: dualization of conic programs.

Builds the dual of a conic program with linear equality constraints and
nonnegative variables, lets an external solver optimize it, and maps the
solved dual quantities back into the primal solution vector.

Example usage:
    from conicdual import ConicProgram, Dualizer, get_solver_ctx

    dualizer = Dualizer(program)
    dualizer.check_out_program()
    get_solver_ctx("CLARABEL").solve(dualizer.get_dual_program())
    dualizer.check_in_program()
    print(program.x)
"""

from conicdual.dualizer import Dualizer, DualizerState, ProtocolViolationError
from conicdual.interfaces import get_solver_ctx
from conicdual.program import Cone, ConeType, ConicProgram, LinearConstraint, Variable

__version__ = "0.1.0"
__all__ = [
    "Cone",
    "ConeType",
    "ConicProgram",
    "Dualizer",
    "DualizerState",
    "LinearConstraint",
    "ProtocolViolationError",
    "Variable",
    "get_solver_ctx",
]
