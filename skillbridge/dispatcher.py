"""Skill entry point for both invocation modes.

A skill module builds one ``Skill`` around its handler::

    skill = Skill(handle, application_id="amzn1.ask.skill.xxx")
    lambda_handler = skill.lambda_handler

    if __name__ == "__main__":
        sys.exit(skill.run())

Deployed to AWS Lambda, the runtime calls ``lambda_handler`` for every
invocation. Run locally with ``--debugServer`` (as ``ask run`` does), the same
handler is served over the development-stage debug relay instead.
"""

import logging
from typing import Any, Optional, Sequence

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from .cli import EXIT_CONFIG, EXIT_OK, parse_config, run_debug_session, setup_logging
from .config import load_config
from .envelope import to_payload
from .errors import ConfigurationError, DecodeError
from .handler import Handler, HandlerContext, call_handler

logger = logging.getLogger(__name__)


class Skill:
    """A skill handler plus the metadata both runtimes need."""

    def __init__(
        self,
        handler: Handler,
        application_id: str = "",
        request_model: Optional[type[BaseModel]] = None,
    ):
        self.handler = handler
        self.application_id = application_id
        self.request_model = request_model

    def run(self, argv: Optional[Sequence[str]] = None) -> int:
        """Start the debug session if requested, else leave it to the host runtime.

        Returns:
            Process exit code
        """
        load_dotenv()
        load_config.cache_clear()

        try:
            config, args = parse_config(argv, application_id=self.application_id)
        except ConfigurationError as e:
            setup_logging()
            logger.error(str(e))
            return EXIT_CONFIG
        setup_logging(args.verbose)

        if config.debug_server:
            return run_debug_session(config, self.handler, self.request_model)

        logger.info("Production mode: the Lambda runtime invokes %s.lambda_handler", type(self).__name__)
        return EXIT_OK

    def lambda_handler(self, event: Any, context: Any = None) -> Any:
        """AWS Lambda entry: decode the event, run the handler, return plain JSON."""
        if self.request_model is not None:
            try:
                request = self.request_model.model_validate(event)
            except ValidationError as e:
                raise DecodeError(f"Invalid skill request: {e}") from e
        else:
            request = event

        ctx = HandlerContext(
            request_id=getattr(context, "aws_request_id", ""),
            skill_id=self.application_id,
            lambda_context=context,
        )
        return to_payload(call_handler(self.handler, ctx, request))
