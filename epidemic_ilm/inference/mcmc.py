"""
Data-Augmentation MCMC
======================
Joint inference of risk parameters, latent event times and the
transmission network from censored, delayed observations.

Each sweep of a chain runs, in order:

1. a Metropolis-Hastings random-walk update of every parameter group
2. batched Metropolis-Hastings updates of latent event times
3. a Gibbs draw of every infection's source from its full conditional

Steps 1 and 2 target the posterior of parameters and event times with the
transmission network summed out of the likelihood; step 3 then samples
the network given those, so every recorded sample is a draw from the
joint posterior.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from .augmentation import EventAugmentation
from .diagnostics import gelman_rubin
from .proposals import StepSize, adaptive_covariance, group_covariances, propose_group
from .trace import Trace, TraceSample
from ..core.compartments import DiseaseModel
from ..core.events import Events
from ..core.likelihood import loglikelihood, source_weights
from ..core.network import EXTERNAL, TransmissionNetwork
from ..core.observations import EventExtents, EventObservations
from ..core.population import Population
from ..core.risk import SLOTS, RiskEvaluation, RiskFunctions, RiskParameters, RiskPriors
from ..errors import (ChainError, ConfigurationError, EpidemicError, HazardError,
                      InitializationError, InvalidRealizationError)

logger = logging.getLogger(__name__)


class ChainStatus(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    ITERATING = "iterating"
    STOPPED = "stopped"
    CONVERGED = "converged"
    FAILED = "failed"


@dataclass
class MCMCConfig:
    """Defaults for iteration; ``iterate`` may override any of them per call"""
    step_size: StepSize = 0.1         # Scalar sd, per-parameter sds, or covariance
    event_step_size: Optional[Union[float, dict]] = None  # Latent-time random-walk sd
    log_scale: bool = False           # Multiplicative (log-scale) parameter moves
    adapt: bool = False               # Adapt proposal covariances from the trace
    adapt_after: int = 500            # Sweeps before adaptation starts
    batches: int = 1                  # Event-time update batches per sweep
    seed: Optional[int] = None

    def __post_init__(self):
        if self.batches < 1:
            raise ConfigurationError(f"batches must be >= 1, got {self.batches}")
        if self.adapt_after < 2:
            raise ConfigurationError(f"adapt_after must be >= 2, got {self.adapt_after}")


class MarkovChain:
    """
    One independent chain. Owns its parameters, event history, network,
    trace and random generator; shares only read-only inputs with siblings.
    """

    def __init__(self, chain_id: int, sampler: "MCMC", rng: np.random.Generator):
        self.id = chain_id
        self.sampler = sampler
        self.rng = rng
        self.status = ChainStatus.UNINITIALIZED
        self.error: Optional[Exception] = None
        self.trace = Trace()
        self._clear_state()

    def _clear_state(self):
        self.params: Optional[RiskParameters] = None
        self.events: Optional[Events] = None
        self.network: Optional[TransmissionNetwork] = None
        self.loglikelihood = -np.inf
        self.logprior = -np.inf
        self.network_logprob = 0.0
        self._risk: Optional[RiskEvaluation] = None

    @property
    def logposterior(self) -> float:
        return self.loglikelihood + self.logprior

    def initialize(self, attempts: int):
        """
        Draw parameters from the priors and event times within their windows
        until the realization is valid, up to ``attempts`` times
        """
        self.status = ChainStatus.INITIALIZING
        sampler = self.sampler
        last_error = None
        for attempt in range(1, attempts + 1):
            params = sampler.priors.sample(self.rng)
            logprior = sampler.priors.logpdf(params)
            if not np.isfinite(logprior):
                continue
            events = sampler.augmentation.initial(self.rng)
            try:
                risk = sampler.risk_functions.evaluate(params, sampler.population)
            except HazardError as e:
                self.mark_failed(ChainError(self.id, 0, e, params))
                raise self.error from e
            try:
                ll = sampler.loglikelihood(params, events, risk)
            except InvalidRealizationError as e:
                last_error = e
                logger.debug("Chain %d attempt %d rejected: %s", self.id, attempt, e)
                continue

            self.params, self.events, self._risk = params, events, risk
            self.loglikelihood, self.logprior = ll, logprior
            self._update_network()
            self.trace.append(self._sample())
            self.status = ChainStatus.READY
            logger.info("Chain %d initialized after %d attempt(s), log-likelihood %.3f",
                        self.id, attempt, ll)
            return

        self._clear_state()
        self.mark_failed(InitializationError(self.id, attempts, last_error))
        raise self.error

    def mark_failed(self, error: EpidemicError):
        self.status = ChainStatus.FAILED
        self.error = error
        logger.error("%s", error)

    def _sample(self) -> TraceSample:
        return TraceSample(
            params=self.params.copy(),
            events=self.events.copy(),
            network=self.network.copy(),
            loglikelihood=self.loglikelihood,
            logprior=self.logprior,
            network_logprob=self.network_logprob,
        )

    def _accept(self, log_alpha: float) -> bool:
        return bool(np.log(self.rng.random()) < min(0.0, log_alpha))

    def _covariances(self, base: Dict[str, np.ndarray], config: MCMCConfig) -> Dict[str, np.ndarray]:
        if not config.adapt or len(self.trace) - 1 < config.adapt_after:
            return base
        samples = self.trace.parameter_matrix(burnin=1)
        if config.log_scale:
            samples = np.log(samples)
        adapted, start = {}, 0
        for slot in SLOTS:
            size = self.params.lengths()[slot]
            if slot in base:
                cov = adaptive_covariance(samples[:, start:start + size])
                adapted[slot] = base[slot] if np.all(cov == 0) else cov
            start += size
        return adapted

    def _update_parameters(self, covariances: Dict[str, np.ndarray], log_scale: bool) -> float:
        sampler = self.sampler
        accepted = 0
        for slot, covariance in covariances.items():
            current = getattr(self.params, slot)
            values, log_jacobian = propose_group(current, covariance, self.rng, log_scale)
            proposal = self.params.copy()
            setattr(proposal, slot, values)

            logprior = sampler.priors.logpdf(proposal)
            if not np.isfinite(logprior):
                continue
            try:
                risk = sampler.risk_functions.update(self._risk, proposal, sampler.population,
                                                     [slot])
            except HazardError as e:
                raise ChainError(self.id, len(self.trace), e, proposal) from e
            try:
                ll = sampler.loglikelihood(proposal, self.events, risk)
            except InvalidRealizationError:
                continue

            log_alpha = ll + logprior - self.loglikelihood - self.logprior + log_jacobian
            if self._accept(log_alpha):
                self.params, self._risk = proposal, risk
                self.loglikelihood, self.logprior = ll, logprior
                accepted += 1
        return accepted / len(covariances) if covariances else np.nan

    def _update_events(self, batches: int) -> float:
        sampler = self.sampler
        candidates = sampler.augmentation.updatable()
        if candidates.size == 0:
            return np.nan
        order = self.rng.permutation(candidates)
        groups = [g for g in np.array_split(order, min(batches, order.size)) if g.size]
        accepted = 0
        for group in groups:
            proposal, log_ratio = sampler.augmentation.propose(self.events, group, self.rng)
            if proposal is None:
                continue
            try:
                ll = sampler.loglikelihood(self.params, proposal, self._risk)
            except InvalidRealizationError:
                continue
            if self._accept(ll - self.loglikelihood + log_ratio):
                self.events, self.loglikelihood = proposal, ll
                accepted += 1
        return accepted / len(groups)

    def _update_network(self):
        network = TransmissionNetwork(self.events.size)
        logprob = 0.0
        for i, weights in source_weights(self.events, self._risk).items():
            total = weights.sum()
            choice = int(self.rng.choice(weights.size, p=weights / total))
            network.set_source(i, EXTERNAL if choice == 0 else choice - 1)
            logprob += float(np.log(weights[choice] / total))
        self.network = network
        self.network_logprob = logprob

    def sweep(self, covariances: Dict[str, np.ndarray], batches: int, config: MCMCConfig):
        """One full update of parameters, event times and network"""
        acceptance = {
            "parameters": self._update_parameters(self._covariances(covariances, config),
                                                  config.log_scale),
            "events": self._update_events(batches),
        }
        self._update_network()
        self.trace.append(self._sample(), acceptance)

    def __repr__(self) -> str:
        return (f"MarkovChain(id={self.id}, status={self.status.value}, "
                f"sweeps={max(len(self.trace) - 1, 0)}, loglikelihood={self.loglikelihood:.3f})")


class MCMC:
    """
    Data-augmentation MCMC over one or more independent chains

    Usage:
        mcmc = MCMC(population, DiseaseModel.SIR, functions, priors, observations, extents)
        mcmc.start(n_chains=3, attempts=200, seed=1)
        mcmc.iterate(5000, batches=10, step_size=0.05)
    """

    def __init__(self,
                 population: Population,
                 model: DiseaseModel,
                 risk_functions: RiskFunctions,
                 priors: RiskPriors,
                 observations: EventObservations,
                 extents: EventExtents,
                 start_states=None,
                 config: Optional[MCMCConfig] = None):
        """
        Args:
            population: Population (shared read-only by every chain)
            model: Disease model variant
            risk_functions: Risk function bundle
            priors: One prior per parameter dimension
            observations: Observed event times
            extents: Windows for latent event times
            start_states: Compartments at time 0 (default: all susceptible)
            config: Iteration defaults
        """
        if observations.size != population.size:
            raise ConfigurationError(
                f"Observations for {observations.size} individuals, population of {population.size}"
            )
        risk_functions.validate(model)
        priors.validate(risk_functions, model)

        self.population = population
        self.model = model
        self.risk_functions = risk_functions
        self.priors = priors
        self.observations = observations
        self.extents = extents
        self.config = config if config is not None else MCMCConfig()
        self.augmentation = EventAugmentation(model, observations, extents, start_states,
                                              step_size=self.config.event_step_size)
        self.chains: List[MarkovChain] = []

    def loglikelihood(self, params: RiskParameters, events: Events,
                      risk: Optional[RiskEvaluation] = None) -> float:
        """Network-marginal log-likelihood over the observation window"""
        return loglikelihood(self.population, self.risk_functions, params, events,
                             end_time=self.observations.horizon, risk=risk)

    def start(self, n_chains: int = 1, attempts: int = 100,
              seed: Optional[int] = None) -> List[MarkovChain]:
        """
        Initialize ``n_chains`` independent chains

        Args:
            n_chains: Number of chains
            attempts: Initialization attempts allowed per chain
            seed: Seed for the chains' generators (default: ``config.seed``)

        Returns:
            The chains; those that could not be initialized have status FAILED

        Raises:
            InitializationError: every chain failed; the first chain's error is
                raised, a ChainError if a risk function produced an invalid rate
        """
        if n_chains < 1 or attempts < 1:
            raise ConfigurationError("n_chains and attempts must both be >= 1")
        seed = self.config.seed if seed is None else seed
        children = np.random.SeedSequence(seed).spawn(n_chains)
        self.chains = [MarkovChain(k, self, np.random.default_rng(child))
                       for k, child in enumerate(children)]

        for chain in self.chains:
            try:
                chain.initialize(attempts)
            except EpidemicError:
                continue

        ready = [c for c in self.chains if c.status is ChainStatus.READY]
        logger.info("%d of %d chains initialized", len(ready), n_chains)
        if not ready:
            raise self.chains[0].error
        return self.chains

    def iterate(self, n_sweeps: int,
                batches: Optional[int] = None,
                step_size: Optional[StepSize] = None) -> List[MarkovChain]:
        """
        Run ``n_sweeps`` sweeps on every initialized chain

        Args:
            n_sweeps: Number of sweeps
            batches: Event-time update batches per sweep
            step_size: Parameter proposal step size or covariance (see ``group_covariances``)

        Returns:
            The chains; a chain that fails mid-run is marked FAILED with its
            ``error`` set while the others carry on

        Raises:
            ChainError: every chain that was run failed
        """
        runnable = [c for c in self.chains if c.status in
                    (ChainStatus.READY, ChainStatus.STOPPED, ChainStatus.CONVERGED)]
        if not runnable:
            raise EpidemicError("No initialized chains; call start() first")

        batches = self.config.batches if batches is None else batches
        if batches < 1:
            raise ConfigurationError(f"batches must be >= 1, got {batches}")
        step_size = self.config.step_size if step_size is None else step_size
        covariances = group_covariances(step_size, self.priors.template())

        for chain in runnable:
            chain.status = ChainStatus.ITERATING
            try:
                for sweep in range(n_sweeps):
                    chain.sweep(covariances, batches, self.config)
                    logger.debug("Chain %d sweep %d: log-likelihood %.3f",
                                 chain.id, len(chain.trace) - 1, chain.loglikelihood)
            except EpidemicError as e:
                if not isinstance(e, ChainError):
                    e = ChainError(chain.id, len(chain.trace), e, chain.params)
                chain.mark_failed(e)
                continue
            chain.status = ChainStatus.STOPPED
            rates = chain.trace.acceptance_rates().tail(n_sweeps).mean()
            logger.info("Chain %d finished %d sweeps; acceptance %s", chain.id, n_sweeps,
                        ", ".join(f"{k}={v:.2f}" for k, v in rates.items()))

        if all(c.status is ChainStatus.FAILED for c in runnable):
            raise runnable[0].error
        return self.chains

    def traces(self) -> List[Trace]:
        return [c.trace for c in self.chains if c.status is not ChainStatus.FAILED]

    def check_convergence(self, threshold: float = 1.1, burnin: int = 0) -> Dict[str, float]:
        """
        Gelman-Rubin R-hat per parameter; marks every stopped chain CONVERGED
        when all R-hats fall below ``threshold``
        """
        rhats = gelman_rubin(self.traces(), burnin)
        converged = bool(rhats) and all(np.isfinite(v) and v < threshold for v in rhats.values())
        if converged:
            for chain in self.chains:
                if chain.status is ChainStatus.STOPPED:
                    chain.status = ChainStatus.CONVERGED
        logger.info("R-hat: %s", rhats)
        return rhats

    def summary(self, burnin: int = 0) -> pd.DataFrame:
        """Posterior mean, sd and 95% credible interval per parameter, pooled over chains"""
        matrices = [t.parameter_matrix(burnin) for t in self.traces()]
        matrices = [m for m in matrices if m.size]
        if not matrices:
            return pd.DataFrame()
        pooled = np.vstack(matrices)
        names = self.priors.template().names()
        return pd.DataFrame({
            "mean": pooled.mean(axis=0),
            "sd": pooled.std(axis=0),
            "q2.5": np.quantile(pooled, 0.025, axis=0),
            "q97.5": np.quantile(pooled, 0.975, axis=0),
        }, index=names)
