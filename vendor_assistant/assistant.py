"""
Turn orchestration for the ordering assistant.

One call to ``OrderingAssistant.handle_turn`` processes one user turn:

    1. bind the session id to the logging context for the turn and take the session lock
    2. build the history text from recent messages
    3. classify the query (safe default on failure)
    4. resolve the location: explicit coordinates, then a place name
       (geocoded and saved), then the saved location
    5. ask for a location when a non-cart turn needs one and has none
    6. route to a workflow
    7. render narration payloads (fallback renderer on failure)
    8. persist the user query and the assistant's spoken reply

Usage:
    assistant = OrderingAssistant(classifier=my_classifier, catalog=InMemoryCatalog())
    reply = await assistant.handle_turn(FlowInput(query="pizza near me", session_id="chat-42"))
"""

from typing import Optional

from vendor_assistant.config import AppConfig, settings
from vendor_assistant.conversation.memory import Conversation, ConversationMemory
from vendor_assistant.logging_context import NO_SESSION_ID, get_session_logger, session_scope
from vendor_assistant.resilience import (
    CollaboratorError,
    call_collaborator,
    user_friendly_error_message,
)
from vendor_assistant.schemas.flow_schema import ErrorKind, FlowInput, FlowOutput, NarrationPayload
from vendor_assistant.schemas.intent_schema import QueryAnalysis
from vendor_assistant.schemas.memory_schema import Role, UserLocation
from vendor_assistant.tools.catalog import Catalog
from vendor_assistant.tools.classifier import Classifier, classify_safely
from vendor_assistant.tools.geocoder import Geocoder, StaticGeocoder
from vendor_assistant.tools.narrator import FallbackNarrator, Narrator, narrate_safely
from vendor_assistant.utils import format_chat_history
from vendor_assistant.workflows.base import WorkflowContext
from vendor_assistant.workflows.cart_workflow import CartWorkflow
from vendor_assistant.workflows.exploration_workflow import ExplorationWorkflow
from vendor_assistant.workflows.router import WorkflowRouter

logger = get_session_logger(__name__)

LOCATION_REQUEST = "Please share your city name or current location to find nearby vendors."
LOCATION_REQUEST_MARKDOWN = (
    "📍 Please share your **city name** or **current location** to find nearby vendors."
)
UNABLE_TO_PROCESS = "Unable to process your request. Please try again."
CURRENT_LOCATION = "Current location"


class OrderingAssistant:
    """Session state engine front door. Collaborators are injected."""

    def __init__(
        self,
        classifier: Classifier,
        catalog: Catalog,
        geocoder: Optional[Geocoder] = None,
        narrator: Optional[Narrator] = None,
        memory: Optional[ConversationMemory] = None,
        router: Optional[WorkflowRouter] = None,
        config: AppConfig = settings,
    ) -> None:
        self.config = config
        self.classifier = classifier
        self.geocoder = geocoder or StaticGeocoder()
        self.fallback_narrator = FallbackNarrator(config.catalog.currency_symbol)
        self.narrator = narrator or self.fallback_narrator
        self.memory = memory or ConversationMemory(
            max_messages=config.memory.max_messages,
            max_entities=config.memory.max_entities,
        )
        self.router = router or WorkflowRouter([
            CartWorkflow(),
            ExplorationWorkflow(
                catalog,
                vendor_type=config.catalog.vendor_type,
                vendor_limit=config.catalog.vendor_limit,
                page_size=config.catalog.service_page_size,
                max_retries=config.retry.max_retries,
                initial_delay=config.retry.initial_delay_sec,
            ),
        ])

    async def handle_turn(self, turn: FlowInput) -> FlowOutput:
        """Process one user turn and return the finished reply."""
        with session_scope(turn.session_id):
            logger.info("Turn started: %r", turn.query)

            if not turn.session_id:
                conversation = Conversation(
                    NO_SESSION_ID,
                    max_messages=self.config.memory.max_messages,
                    max_entities=self.config.memory.max_entities,
                )
                return await self._run_turn(turn, conversation)

            async with self.memory.session(turn.session_id) as conversation:
                return await self._run_turn(turn, conversation)

    async def _run_turn(self, turn: FlowInput, conversation: Conversation) -> FlowOutput:
        try:
            return await self._process(turn, conversation)
        except CollaboratorError as e:
            message = user_friendly_error_message(e.__cause__ or e)
            logger.error("Turn failed on collaborator '%s': %s", e.collaborator, e)
            return FlowOutput(
                voice_text=message,
                rich_text=(
                    f"## Unable to Process Request\n\n{message}\n\n"
                    "Please try again in a few moments."
                ),
                error=message,
                error_kind=ErrorKind.COLLABORATOR_FAILURE,
            )

    async def _process(self, turn: FlowInput, conversation: Conversation) -> FlowOutput:
        retry = self.config.retry
        history_text = format_chat_history(conversation.history(self.config.memory.history_limit))

        analysis = await classify_safely(
            self.classifier,
            turn.query,
            history_text,
            max_retries=retry.max_retries,
            initial_delay=retry.initial_delay_sec,
        )
        query = analysis.corrected_query or turn.query
        if query != turn.query:
            logger.info("Query corrected to %r", query)
        intent = analysis.to_intent()

        location = await self._resolve_location(turn, analysis, conversation)
        if location is None and analysis.needs_location and not analysis.is_cart_operation:
            logger.info("Location needed but unavailable; asking the user")
            reply = FlowOutput(
                voice_text=LOCATION_REQUEST,
                rich_text=LOCATION_REQUEST_MARKDOWN,
                error_kind=ErrorKind.PRECONDITION_MISSING,
            )
            self._persist(conversation, query, reply.voice_text)
            return reply

        context = WorkflowContext(
            query=query,
            analysis=analysis,
            intent=intent,
            conversation=conversation,
            session_id=turn.session_id,
            location=location,
            history_text=history_text,
        )
        result = await self.router.route(context)
        if result is None:
            return FlowOutput(error=UNABLE_TO_PROCESS)

        if isinstance(result, NarrationPayload):
            narrated = await narrate_safely(
                self.narrator,
                self.fallback_narrator,
                query,
                result,
                location,
                history_text,
                conversation.cart.snapshot(),
                analysis,
                max_retries=retry.max_retries,
                initial_delay=retry.initial_delay_sec,
            )
            reply = FlowOutput(voice_text=narrated.voice_text, rich_text=narrated.rich_text)
        else:
            reply = result

        self._persist(conversation, query, reply.voice_text or "")
        logger.info("Turn completed")
        return reply

    async def _resolve_location(
        self, turn: FlowInput, analysis: QueryAnalysis, conversation: Conversation
    ) -> Optional[UserLocation]:
        if turn.latitude is not None and turn.longitude is not None:
            location = UserLocation(
                latitude=turn.latitude,
                longitude=turn.longitude,
                name=turn.location_name or analysis.location_name or CURRENT_LOCATION,
            )
            conversation.set_location(location)
            return location

        place = turn.location_name or analysis.location_name
        if place:
            try:
                coords = await call_collaborator(
                    "geocoder",
                    lambda: self.geocoder.resolve(place),
                    max_retries=self.config.retry.max_retries,
                    initial_delay=self.config.retry.initial_delay_sec,
                )
            except CollaboratorError as e:
                logger.warning("Could not resolve location '%s': %s", place, e)
                return None
            location = UserLocation(
                latitude=coords.latitude, longitude=coords.longitude, name=place
            )
            conversation.set_location(location)
            logger.info("Location saved: %s", place)
            return location

        return conversation.location

    @staticmethod
    def _persist(conversation: Conversation, query: str, voice_text: str) -> None:
        conversation.append_message(Role.USER, query)
        conversation.append_message(Role.ASSISTANT, voice_text)
