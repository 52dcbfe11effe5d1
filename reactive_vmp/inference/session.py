"""
Inference session orchestrator.

The session owns the run-level state: the frozen factor graph, the
partition of the latent variables, the committed marginals, the message
cache, the iteration counter and the free-energy history.

State machine::

    BUILT -> RUNNING -> CONVERGED
                     -> ITERATION_LIMIT_REACHED
                     -> DIVERGED
                     -> CANCELLED

Classes
-------
InferenceState
    Session states.
InferenceResult
    Terminal state, marginal history and free-energy history of a run.
InferenceSession
    Builds, validates and runs inference on a model.

Functions
---------
infer
    One-call convenience wrapper around ``InferenceSession``.
"""

import threading
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

from ..distributions import Distribution, PointMass
from ..exceptions import (
    IncompatibleFamily,
    InferenceDiverged,
    MissingInitialMarginal,
    NumericalError,
    UnknownVariable
)
from ..graph import FactorGraph, ModelSpecification
from .constraints import Constraints
from .free_energy import evaluate
from .marginals import MarginalSet
from .scheduler import SEQUENTIAL, MessageScheduler


class InferenceState(str, Enum):
    """Lifecycle states of an inference session."""

    BUILT = "built"
    RUNNING = "running"
    CONVERGED = "converged"
    ITERATION_LIMIT_REACHED = "iteration_limit_reached"
    DIVERGED = "diverged"
    CANCELLED = "cancelled"


TERMINAL_STATES = (
    InferenceState.CONVERGED,
    InferenceState.ITERATION_LIMIT_REACHED,
    InferenceState.DIVERGED,
    InferenceState.CANCELLED
)


class InferenceResult:
    """
    Outcome of an inference run.

    Attributes
    ----------
    state : InferenceState
        Terminal state.
    iterations : int
        Number of completed (committed) sweeps.
    marginals : dict
        Variable name -> list of marginals. With ``keep_history`` the list
        has ``iterations + 1`` entries (index 0 holds the initial
        marginal); otherwise only the final marginal.
    free_energy : list of float or None
        Free energy per completed iteration, index 0 being the evaluation
        of the initial marginals. None when not requested.
    error : InferenceDiverged or None
        The error that ended a diverged run.
    """

    def __init__(
        self,
        graph: FactorGraph,
        state: InferenceState,
        iterations: int,
        marginals: Dict[str, List[Distribution]],
        free_energy: Optional[List[float]] = None,
        error: Optional[InferenceDiverged] = None
    ):
        self.graph = graph
        self.state = state
        self.iterations = iterations
        self.marginals = marginals
        self.free_energy = free_energy
        self.error = error

    @property
    def converged(self) -> bool:
        return self.state == InferenceState.CONVERGED

    @property
    def diverged(self) -> bool:
        return self.state == InferenceState.DIVERGED

    def posterior(self, name: str) -> Union[Distribution, List[Distribution]]:
        """
        Final marginal of a variable, or the list of final marginals of an
        array declared as ``name[i]``.
        """
        if name in self.marginals:
            return self.marginals[name][-1]
        return [
            self.marginals[self.graph.name_of(v)][-1]
            for v in self.graph.ids_for(name)
        ]

    def history(self, name: str) -> Union[List[Distribution], List[List[Distribution]]]:
        """Marginal history of a variable (or of every element of an array)."""
        if name in self.marginals:
            return list(self.marginals[name])
        return [
            list(self.marginals[self.graph.name_of(v)])
            for v in self.graph.ids_for(name)
        ]

    def get_free_energy_history(self) -> List[float]:
        return list(self.free_energy or [])

    def __repr__(self) -> str:
        return (
            f"InferenceResult(state={self.state.value}, "
            f"iterations={self.iterations})"
        )


class InferenceSession:
    """
    Variational message-passing inference on a factor graph.

    Parameters
    ----------
    model : FactorGraph or ModelSpecification
        The model. A specification is built first; the graph is frozen.
    constraints : Constraints, str or dict, optional
        Factorisation constraints (default: mean field).
    initial_marginals : mapping, optional
        Latent variable (or array) name -> seed distribution. For arrays a
        single distribution is used for every element, a sequence gives
        one per element. Every latent variable must be seeded.
    schedule : {"sequential", "synchronous"}, default="sequential"
        Group update schedule, see ``MessageScheduler``.
    free_energy_offset : float, default=0.0
        Constant added to every free-energy evaluation.

    Raises
    ------
    MissingInitialMarginal
        If a latent variable has no seed.
    IncompatibleFamily
        If a seed contradicts the variable's family hint.
    OverlappingGroups, IncompleteCoverage, UnknownVariable
        If the constraints are not a valid partition.

    Examples
    --------
    >>> session = InferenceSession(spec, "mean_field", {"m": Normal(0, 1)})
    >>> result = session.run(iterations=20, free_energy=True)
    >>> result.posterior("m")
    """

    def __init__(
        self,
        model: Union[FactorGraph, ModelSpecification],
        constraints=None,
        initial_marginals: Optional[Mapping[str, object]] = None,
        schedule: str = SEQUENTIAL,
        free_energy_offset: float = 0.0
    ):
        graph = model.build() if isinstance(model, ModelSpecification) else model
        if not isinstance(graph, FactorGraph):
            raise TypeError("model must be a FactorGraph or ModelSpecification")

        self.graph = graph.freeze()
        self.constraints = Constraints.from_config(constraints)
        self.groups = self.constraints.partition(graph.latent_ids(), graph)
        self.scheduler = MessageScheduler(graph, self.groups, schedule=schedule)
        self.free_energy_offset = float(free_energy_offset)

        self.marginals = self._seed_marginals(initial_marginals or {})
        # latest message per edge, kept for inspection only
        self.messages: Dict[tuple, Distribution] = {}
        self.iteration = 0
        self.free_energy_history: List[float] = []
        self.state = InferenceState.BUILT
        self._cancel = threading.Event()

    def _seed_marginals(self, initial: Mapping[str, object]) -> MarginalSet:
        seeds: Dict[int, Distribution] = {}
        for key, value in initial.items():
            ids = self.graph.ids_for(key)
            if isinstance(value, Distribution):
                values = [value] * len(ids)
            else:
                values = list(value)
                if len(values) != len(ids):
                    raise ValueError(
                        f"Expected {len(ids)} initial marginals for '{key}', "
                        f"got {len(values)}"
                    )
            for variable_id, seed in zip(ids, values):
                node = self.graph.variables[variable_id]
                if not node.is_latent:
                    raise UnknownVariable(
                        f"'{node.name}' is observed and cannot be seeded"
                    )
                if not isinstance(seed, Distribution):
                    raise TypeError(
                        f"Initial marginal of '{node.name}' is not a distribution"
                    )
                if node.family is not None and not isinstance(seed, node.family):
                    raise IncompatibleFamily(
                        f"Initial marginal of '{node.name}' is "
                        f"{type(seed).__name__}, expected {node.family.__name__}"
                    )
                seeds[variable_id] = seed.ensure_proper()

        missing = [
            self.graph.name_of(v) for v in self.graph.latent_ids()
            if v not in seeds
        ]
        if missing:
            raise MissingInitialMarginal(
                f"No initial marginal for latent variables: {', '.join(missing)}"
            )

        marginals = []
        for node in self.graph.variables:
            if node.is_latent:
                marginals.append(seeds[node.id])
            else:
                marginals.append(PointMass(node.value))
        return MarginalSet(marginals)

    def cancel(self) -> None:
        """
        Request cancellation.

        Honoured before the next sweep starts; the last committed iteration
        becomes the result.
        """
        self._cancel.set()

    def free_energy(self) -> float:
        """Free energy of the currently committed marginals."""
        return evaluate(self.graph, self.marginals, offset=self.free_energy_offset)

    def run(
        self,
        iterations: int = 10,
        free_energy: bool = False,
        tolerance: Optional[float] = None,
        keep_history: bool = True,
        verbose: bool = False,
        check_every: int = 10,
        callback: Optional[Callable[[int, MarginalSet, Optional[float]], None]] = None
    ) -> InferenceResult:
        """
        Run inference.

        Parameters
        ----------
        iterations : int, default=10
            Maximum number of sweeps.
        free_energy : bool, default=False
            Whether to report the free-energy history.
        tolerance : float, optional
            Stop with ``CONVERGED`` once the absolute change of the free
            energy between consecutive iterations is below this value.
            Enables free-energy evaluation.
        keep_history : bool, default=True
            Keep every iteration's marginals, or only the final ones.
        verbose : bool, default=False
            Print progress.
        check_every : int, default=10
            Print progress every this many iterations.
        callback : callable, optional
            Called as ``callback(iteration, marginals, free_energy)`` after
            every committed sweep.

        Returns
        -------
        result : InferenceResult

        Notes
        -----
        A numerical failure or a family mismatch during a sweep (or during
        the free energy of the new marginals) ends the run in ``DIVERGED``;
        the returned history stops at the last committed iteration. Any
        other exception, for example from ``callback``, propagates and also
        leaves the session ``DIVERGED``.
        """
        if self.state != InferenceState.BUILT:
            raise RuntimeError(
                f"Session is {self.state.value}; create a new session to rerun"
            )
        if int(iterations) != iterations or iterations < 0:
            raise ValueError("iterations must be a non-negative integer")
        if tolerance is not None and not tolerance > 0:
            raise ValueError("tolerance must be positive")
        if check_every < 1:
            raise ValueError("check_every must be at least 1")

        self.state = InferenceState.RUNNING
        track_free_energy = free_energy or tolerance is not None
        error = None

        history = {v: [self.marginals[v]] for v in self.graph.latent_ids()}

        if verbose:
            print(
                f"Starting {self.__class__.__name__} "
                f"({self.scheduler.schedule}, {len(self.groups)} groups)..."
            )
            print("=" * 60)

        if track_free_energy:
            try:
                self.free_energy_history.append(self.free_energy())
            except (NumericalError, IncompatibleFamily) as exc:
                error = InferenceDiverged(0, exc)
                self.state = InferenceState.DIVERGED

        if self.state == InferenceState.RUNNING:
            try:
                error = self._iterate(
                    int(iterations), track_free_energy, tolerance,
                    keep_history, history, verbose, check_every, callback
                )
            finally:
                if self.state == InferenceState.RUNNING:
                    # an exception escaped the loop; the session cannot resume
                    self.state = InferenceState.DIVERGED

        if verbose:
            self._print_outcome(error)

        if not keep_history:
            for variable_id, marginals in history.items():
                marginals[:] = [self.marginals[variable_id]]

        return InferenceResult(
            self.graph,
            self.state,
            self.iteration,
            {self.graph.name_of(v): m for v, m in history.items()},
            free_energy=list(self.free_energy_history) if free_energy else None,
            error=error
        )

    def _iterate(
        self,
        iterations: int,
        track_free_energy: bool,
        tolerance: Optional[float],
        keep_history: bool,
        history: Dict[int, List[Distribution]],
        verbose: bool,
        check_every: int,
        callback
    ) -> Optional[InferenceDiverged]:
        """Sweep loop of ``run``; sets the terminal state."""
        for iteration in range(1, iterations + 1):
            if self._cancel.is_set():
                self.state = InferenceState.CANCELLED
                return None

            try:
                working, messages = self.scheduler.sweep(self.marginals)
                value = None
                if track_free_energy:
                    value = evaluate(
                        self.graph, working, offset=self.free_energy_offset
                    )
            except (NumericalError, IncompatibleFamily) as exc:
                self.state = InferenceState.DIVERGED
                return InferenceDiverged(iteration, exc)

            # Commit the completed sweep
            self.marginals = working
            self.messages.update(messages)
            self.iteration = iteration
            for variable_id, marginals in history.items():
                if keep_history:
                    marginals.append(working[variable_id])
                else:
                    marginals[:] = [working[variable_id]]
            if value is not None:
                self.free_energy_history.append(value)

            if verbose and (iteration % check_every == 0 or iteration == iterations):
                self._print_progress(iteration, value)

            if callback is not None:
                callback(iteration, self.marginals, value)

            if tolerance is not None:
                change = abs(value - self.free_energy_history[-2])
                if change < tolerance:
                    self.state = InferenceState.CONVERGED
                    return None

        self.state = InferenceState.ITERATION_LIMIT_REACHED
        return None

    def _print_progress(self, iteration: int, value: Optional[float]) -> None:
        output = f"Iter {iteration:4d}"
        if value is not None:
            output += f" | Free energy: {value:12.4f}"
        output += f" | Groups: {len(self.groups)}"
        print(output)

    def _print_outcome(self, error: Optional[InferenceDiverged]) -> None:
        if self.state == InferenceState.CONVERGED:
            print(f"\nConverged at iteration {self.iteration}")
        elif self.state == InferenceState.DIVERGED:
            print(f"\nDiverged: {error}")
        elif self.state == InferenceState.CANCELLED:
            print(f"\nCancelled after iteration {self.iteration}")
        else:
            print("\nReached maximum iterations without convergence")


def infer(
    model: Union[FactorGraph, ModelSpecification],
    constraints=None,
    initial_marginals: Optional[Mapping[str, object]] = None,
    iterations: int = 10,
    free_energy: bool = False,
    tolerance: Optional[float] = None,
    keep_history: bool = True,
    schedule: str = SEQUENTIAL,
    free_energy_offset: float = 0.0,
    verbose: bool = False,
    check_every: int = 10,
    callback=None
) -> InferenceResult:
    """
    Build a session and run it.

    See ``InferenceSession`` and ``InferenceSession.run`` for the
    parameters.
    """
    session = InferenceSession(
        model,
        constraints=constraints,
        initial_marginals=initial_marginals,
        schedule=schedule,
        free_energy_offset=free_energy_offset
    )
    return session.run(
        iterations=iterations,
        free_energy=free_energy,
        tolerance=tolerance,
        keep_history=keep_history,
        verbose=verbose,
        check_every=check_every,
        callback=callback
    )
