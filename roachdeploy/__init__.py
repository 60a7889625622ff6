"""roachdeploy: deploy cockroach clusters on AWS and GCE with docker-machine.

Example:
    from roachdeploy.config import load_context
    from roachdeploy.docker import Docker
    from roachdeploy.drivers import create_driver
    from roachdeploy.machine import DockerMachine
    from roachdeploy.orchestrator import Orchestrator

    context = load_context({"region": "aws:us-east-1"})
    machines = DockerMachine()
    orchestrator = Orchestrator(
        context, machines, Docker(), driver_factory=lambda: create_driver(context, machines),
    )
    orchestrator.init()
    orchestrator.add_nodes(2)
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
