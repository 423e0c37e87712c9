"""
Likelihood Evaluator
====================
Exact log-likelihood of a continuous-time event history.

Between events the hazards are constant, so each inter-event interval
contributes ``-total_hazard * duration`` and each event contributes the
log of its own hazard. Events sharing a time are all scored against the
hazards in force just before that time, then applied in (individual, kind)
order.
"""

from itertools import groupby
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from .events import Event, Events
from .network import EXTERNAL, TransmissionNetwork
from .population import Population
from .rates import TransitionRates
from .risk import RiskEvaluation, RiskFunctions, RiskParameters
from ..errors import ConfigurationError, InvalidRealizationError


def replay(events: Events, risk: RiskEvaluation) -> Iterator[Tuple[float, List[Event], TransitionRates]]:
    """
    Walk an event history in time order.

    Yields ``(time, events_at_time, rates)`` where ``rates`` are the hazards
    just before ``time``; the events are applied once the caller resumes.
    """
    rates = TransitionRates(events.model, risk, events.start_states)
    for time, group in groupby(events.sorted_events(), key=lambda ev: ev.time):
        group = list(group)
        yield time, group, rates
        for ev in group:
            rates.apply(ev.individual, ev.kind)


def _event_rate(ev: Event, rates: TransitionRates, network: Optional[TransmissionNetwork]) -> float:
    if network is not None and ev.kind is rates.model.transmission:
        source = network.source(ev.individual)
        if source == EXTERNAL:
            return float(rates.external[ev.individual])
        return float(rates.internal[source, ev.individual])
    return rates.rate(ev.individual, ev.kind)


def loglikelihood(population: Population,
                  risk_functions: RiskFunctions,
                  params: RiskParameters,
                  events: Events,
                  network: Optional[TransmissionNetwork] = None,
                  end_time: Optional[float] = None,
                  risk: Optional[RiskEvaluation] = None) -> float:
    """
    Log-likelihood of an event history (and optionally its transmission network)

    Args:
        population: Population the events belong to
        risk_functions: Risk function bundle
        params: Risk parameters
        events: Event history
        network: Transmission network; when omitted, transmission events are
            scored by their total hazard (sources summed out)
        end_time: End of the observation window; defaults to the last event
        risk: Pre-evaluated risk functions for ``params``, to skip re-evaluation

    Returns:
        The log-likelihood

    Raises:
        InvalidRealizationError: the realization is impossible under the model
    """
    if events.size != population.size:
        raise ConfigurationError(
            f"Event history of size {events.size} does not match population of {population.size}"
        )
    events.validate()
    if network is not None:
        network.validate(events)
    if risk is None:
        risk = risk_functions.evaluate(params, population)

    last = events.last_time()
    if end_time is None:
        end_time = last
    elif last > end_time:
        raise InvalidRealizationError(
            f"Event at time {last} falls after the end of the window at {end_time}"
        )

    ll = 0.0
    previous = 0.0
    rates = None
    for time, group, rates in replay(events, risk):
        ll -= rates.total() * (time - previous)
        for ev in group:
            rate = _event_rate(ev, rates, network)
            if not rate > 0:
                raise InvalidRealizationError(
                    f"Individual {ev.individual} undergoes {ev.kind.label} at {time} "
                    f"with zero hazard"
                )
            ll += np.log(rate)
        previous = time

    if rates is None:
        rates = TransitionRates(events.model, risk, events.start_states)
    # the exhausted replay has applied the final group
    ll -= rates.total() * (end_time - previous)
    return float(ll)


def source_weights(events: Events, risk: RiskEvaluation) -> Dict[int, np.ndarray]:
    """
    Unnormalized full-conditional weights of each infected individual's
    source, as ``[sparks, individual 0, ..., individual n-1]``
    """
    weights = {}
    transmission = events.model.transmission
    for _, group, rates in replay(events, risk):
        for ev in group:
            if ev.kind is transmission:
                weights[ev.individual] = rates.source_weights(ev.individual)
    return weights
