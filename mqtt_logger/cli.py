from __future__ import annotations

import logging
import sys

import click
from pydantic import ValidationError

from .bridge import Bridge
from .config import Settings
from .logging_config import setup_logging
from .topics import resolve_topics

log = logging.getLogger("mqttlogger.cli")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-b", "--broker", help="Domain name or IP address of the broker.")
@click.option("-p", "--port", type=int, help="Port on which the broker listens.")
@click.option("-t", "--topics", multiple=True, help="Topic to be monitored; repeat per topic: -t a -t b.")
@click.option("-f", "--topics-file", type=click.Path(exists=True, dir_okay=False), help="File listing one topic per line.")
@click.option("-i", "--id", "client_id", help="Client identifier used when connecting.")
@click.option("-k", "--keep-alive", type=int, metavar="SEC", help="Seconds between pings when idle.")
@click.option("--inflight", type=int, help="Number of concurrent in-flight messages.")
@click.option("-a", "--auth", nargs=2, metavar="USER PASS", help="Credentials for logging in.")
@click.option(
    "-m",
    "--max-packet-size",
    type=int,
    nargs=2,
    metavar="IN OUT",
    help="Max packet size in bytes: incoming, then outgoing. A larger incoming message ends the run; OUT is unused since nothing is published.",
)
@click.option("-c", "--channel-capacity", type=int, help="Request queue depth.")
@click.option("--clean-session", is_flag=True, default=None, help="Start a clean session.")
@click.option("--transport", type=click.Choice(["mqtt", "zmq"]), help="Wire protocol.")
@click.option("--log-dir", type=click.Path(file_okay=False), help="Directory for <topic>.txt files.")
@click.option("--sync-writes", is_flag=True, default=None, help="fsync every record.")
@click.option("--log-level", help="Diagnostic log level.")
def main(topics, auth, max_packet_size, **options) -> None:
    """Subscribe to topics and append every message to <topic>.txt."""
    overrides = {k: v for k, v in options.items() if v is not None}
    if topics:
        overrides["topics"] = list(topics)
    if auth:
        overrides["username"], overrides["password"] = auth
    if max_packet_size:
        overrides["max_packet_size"] = max_packet_size[0]
    try:
        settings = Settings(**overrides)
        setup_logging(settings)
        topic_list = resolve_topics(settings)
    except (ValidationError, ValueError) as e:
        raise click.UsageError(str(e))

    try:
        code = Bridge(settings).run(topic_list)
    except ValueError as e:
        raise click.UsageError(str(e))
    except KeyboardInterrupt:
        log.info("Interrupted")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
