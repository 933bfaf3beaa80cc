"""
This module is a gateway to path searching: given a search context, a goal and an engine factory,
it steps the search engine on every tick until it finishes, classifies the outcome and either
retries or reports to the registered listeners.

It declares the search engine interface, but engines themselves are implemented in other
modules (detour.engines) or in the host application.

The module is organised as follows:
 - core defines data structures such as Outcome, StepResult, Request and Listeners
 - engine defines the SearchEngine and EngineFactory protocols
 - classify is the validity rule and retry decision
 - impl is the PathfinderController, bundling the above into the tick driven state machine.
   This is the searching entrypoint
"""

from detour.controller.impl import PathfinderController, run_until_idle

__all__ = ["PathfinderController", "run_until_idle"]
