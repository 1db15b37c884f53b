def get_solver_ctx(
    solver=None,
    options=None,
):
    if solver is None:
        solver = "CLARABEL"
    ctx_cls = None
    if solver in ("CLARABEL", "SCS", "ECOS"):
        from conicdual.interfaces.cvxpy_if import CVXPY_ctx

        ctx_cls = CVXPY_ctx
    else:
        raise RuntimeError(
            "Unknown solver. Check if your solver is supported by conicdual",
        )
    return ctx_cls(solver, options)
