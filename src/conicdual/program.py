"""Conic programs in the standard primal form.

A ``ConicProgram`` solves::

    minimize    c'x
    subject to  Ax = b
                x in K

where K is a product of nonnegative-orthant and second-order cones. Every
variable is owned by exactly one cone and is created together with it.
Variables, cones and constraints live in per-kind arenas and are referenced
by stable integer ids, which also index the flat solution vector ``x``.
"""

import enum
from dataclasses import dataclass, field

import numpy as np


class ConeType(enum.Enum):
    # Values are the keys of cvxpy's conic dimension dictionaries.
    NONNEGATIVE_ORTHANT = "l"
    SECOND_ORDER = "q"


@dataclass(eq=False)
class Variable:
    id: int
    cone: int
    objective_coefficient: float = 0.0
    dual_value: float = 0.0
    # Ordered set of ids of the constraints this variable appears in.
    constraints: dict[int, None] = field(default_factory=dict)

    def num_constraints(self) -> int:
        return len(self.constraints)


@dataclass(eq=False)
class Cone:
    id: int
    type: ConeType
    variables: tuple[int, ...]

    @property
    def variable(self) -> int:
        """The only member of a nonnegative-orthant cone."""
        if self.type is not ConeType.NONNEGATIVE_ORTHANT:
            raise ValueError(f"{self.type.name} cone has no single member")
        return self.variables[0]

    @property
    def apex(self) -> int:
        """The member of a second-order cone bounding the norm of the others."""
        if self.type is not ConeType.SECOND_ORDER:
            raise ValueError(f"{self.type.name} cone has no apex")
        return self.variables[0]


class LinearConstraint:
    """An equality ``sum(coeff * x[var]) == constrained_value``."""

    def __init__(self, program: "ConicProgram", id: int):
        self._program = program
        self.id = id
        self.terms: dict[int, float] = {}
        self.constrained_value = 0.0
        self.lagrange = 0.0

    def __repr__(self):
        return (
            f"LinearConstraint(id={self.id}, terms={self.terms}, "
            f"constrained_value={self.constrained_value})"
        )

    def add_variable(self, var: Variable, coeff: float):
        if var.id in self.terms:
            raise ValueError(
                f"Variable {var.id} already appears in constraint {self.id}"
            )
        self.terms[var.id] = float(coeff)
        var.constraints[self.id] = None

    def remove_variable(self, var: Variable):
        del self.terms[var.id]
        del var.constraints[self.id]

    def coefficient(self, var: Variable) -> float:
        return self.terms[var.id]

    def variables(self) -> list[Variable]:
        return [self._program.variable(i) for i in self.terms]


class ConicProgram:
    def __init__(self):
        self._variables: list[Variable] = []
        self._cones: list[Cone] = []
        self._constraints: list[LinearConstraint] = []
        self._x = np.zeros(0)

    @property
    def variables(self) -> tuple[Variable, ...]:
        return tuple(self._variables)

    @property
    def cones(self) -> tuple[Cone, ...]:
        return tuple(self._cones)

    @property
    def constraints(self) -> tuple[LinearConstraint, ...]:
        return tuple(self._constraints)

    @property
    def num_variables(self) -> int:
        return len(self._variables)

    @property
    def num_cones(self) -> int:
        return len(self._cones)

    @property
    def num_constraints(self) -> int:
        return len(self._constraints)

    def variable(self, id: int) -> Variable:
        return self._variables[id]

    def cone(self, id: int) -> Cone:
        return self._cones[id]

    def constraint(self, id: int) -> LinearConstraint:
        return self._constraints[id]

    def cone_of(self, var: Variable) -> Cone:
        return self._cones[var.cone]

    def create_nonnegative_orthant_cone(self) -> Cone:
        return self._create_cone(ConeType.NONNEGATIVE_ORTHANT, 1)

    def create_second_order_cone(self, n: int) -> Cone:
        if n < 2:
            raise ValueError(f"Second-order cones need at least 2 members, got {n}")
        return self._create_cone(ConeType.SECOND_ORDER, n)

    def create_constraint(self) -> LinearConstraint:
        con = LinearConstraint(self, len(self._constraints))
        self._constraints.append(con)
        return con

    def _create_cone(self, cone_type: ConeType, n: int) -> Cone:
        cone_id = len(self._cones)
        start = len(self._variables)
        ids = tuple(range(start, start + n))
        self._variables.extend(Variable(i, cone_id) for i in ids)
        self._x = np.concatenate([self._x, np.zeros(n)])
        cone = Cone(cone_id, cone_type, ids)
        self._cones.append(cone)
        return cone

    def nonnegative_orthant_cones(self) -> list[Cone]:
        return [k for k in self._cones if k.type is ConeType.NONNEGATIVE_ORTHANT]

    def second_order_cones(self) -> list[Cone]:
        return [k for k in self._cones if k.type is ConeType.SECOND_ORDER]

    def cone_types(self) -> set[ConeType]:
        return {k.type for k in self._cones}

    def index(self, var: Variable) -> int:
        return var.id

    @property
    def x(self) -> np.ndarray:
        """The solution vector, indexed by ``index``.

        Writes through the returned array reach the program until the next
        cone is created. Creating a cone reallocates the vector (keeping its
        values), so references taken before then must be read again.
        """
        return self._x

    @x.setter
    def x(self, value):
        value = np.asarray(value, dtype=np.float64).reshape(-1)
        if value.shape != self._x.shape:
            raise ValueError(
                f"Solution vector must have shape {self._x.shape}, got {value.shape}"
            )
        self._x = value.copy()

    def objective_value(self) -> float:
        c = np.array([v.objective_coefficient for v in self._variables])
        return float(c @ self._x)
