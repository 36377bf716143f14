"""Tile generation orchestration service.

This service coordinates the production of one tile in the scroll:
1. Evolve the scene description with the text backend (best effort)
2. Build the canvas/mask from the predecessor's bottom band
3. Call the image backend with canvas + mask + prompt
4. Crop the duplicated band from the result
5. Report the tile with prompt lineage, timing and model bookkeeping

Backend calls are organised as an ordered list of generation strategies
tried first-success-wins, so every fallback is attempted at most once:

    initial tile:       initial -> fastest_model
    continuation tile:  inpaint -> fast_mode -> fastest_model
"""

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..config import AppConfig, get_config
from ..exceptions import (
    GenerationCancelledError,
    GenerationFailedError,
    ImageProcessingError,
    ModelInputError,
    PromptEvolutionError,
    TransientBackendError,
)
from ..models.model_profile import ModelProfile, ModelRegistry
from ..models.session import SessionStore
from ..models.tile import Tile
from ..utils.image_utils import fetch_image_bytes
from .cropping_service import CroppingService
from .gemini_service import GeminiService
from .outpainting_service import OutpaintingService
from .prompt_service import (
    DEFAULT_SCENE,
    add_contextual_cues,
    build_continuation_prompt,
    build_initial_prompt,
    fallback_evolution,
)
from .replicate_service import ReplicateService

logger = logging.getLogger(__name__)

MAX_SEED = 1_000_000


@dataclass
class GenerationRequest:
    """Inputs for producing one tile."""

    previous_image: Optional[str] = None  # URL or data URL of the predecessor
    current_prompt: Optional[str] = None
    original_user_prompt: Optional[str] = None
    model_name: Optional[str] = None
    debug_mode: bool = False
    inference_steps: Optional[int] = None
    seed: Optional[int] = None
    session_id: Optional[str] = None

    @property
    def is_continuation(self) -> bool:
        return bool(self.previous_image)


@dataclass
class StrategyAttempt:
    """Record of one strategy tried for a request."""

    strategy: str
    model: str
    error: Optional[str] = None
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "model": self.model,
            "error": self.error,
            "duration": round(self.duration, 3),
        }


@dataclass
class GenerationContext:
    """Request-scoped state shared by the strategies of one request."""

    request: GenerationRequest
    scene: str
    theme: Optional[str]
    seed: int
    cancel_event: Optional[threading.Event] = None

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise GenerationCancelledError("Request was cancelled by the caller")


@dataclass
class GenerationStrategy:
    """One way of producing a tile, bound to a model profile."""

    name: str
    profile: ModelProfile
    run: Callable[[GenerationContext, ModelProfile], Tile]

    def __call__(self, context: GenerationContext) -> Tile:
        return self.run(context, self.profile)


@dataclass
class GenerationOutcome:
    """Final tile plus bookkeeping for the caller."""

    tile: Tile
    requested_model: str
    evolved_prompt: Optional[str] = None
    original_user_prompt: Optional[str] = None
    prompt_fallback_used: bool = False
    seed: Optional[int] = None
    total_time: float = 0.0
    attempts: list[StrategyAttempt] = field(default_factory=list)
    model_config: Optional[dict[str, Any]] = None

    @property
    def model_used(self) -> str:
        return self.tile.model_used

    @property
    def fell_back(self) -> bool:
        return self.model_used != self.requested_model or len(self.attempts) > 1

    def to_debug_info(self) -> dict[str, Any]:
        spec = self.tile.slice_spec
        return {
            "requestedModel": self.requested_model,
            "modelUsed": self.model_used,
            "modelConfig": self.model_config,
            "strategy": self.tile.strategy,
            "isInitial": self.tile.is_initial,
            "originalPrompt": self.original_user_prompt,
            "evolvedPrompt": self.evolved_prompt,
            "finalPrompt": self.tile.prompt,
            "promptFallbackUsed": self.prompt_fallback_used,
            "seed": self.seed,
            "totalTime": round(self.total_time, 3),
            "sliceSpec": (
                {
                    "sliceHeight": spec.slice_height,
                    "gradientZone": spec.gradient_zone,
                    "preserveHeight": spec.preserve_height,
                }
                if spec
                else None
            ),
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }


class GenerationService:
    """Orchestrates prompt evolution, outpainting setup, generation and cropping."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        registry: Optional[ModelRegistry] = None,
        replicate_service: Optional[ReplicateService] = None,
        gemini_service: Optional[GeminiService] = None,
        outpainting_service: Optional[OutpaintingService] = None,
        cropping_service: Optional[CroppingService] = None,
        session_store: Optional[SessionStore] = None,
    ):
        """
        Initialize generation service.

        Args:
            config: Application config (global config if None)
            registry: Model profiles (loaded from config if None)
            replicate_service: Optional pre-configured image backend
            gemini_service: Optional pre-configured text backend
            outpainting_service: Optional pre-configured canvas/mask builder
            cropping_service: Optional pre-configured cropper
            session_store: Optional shared session store
        """
        self.config = config or get_config()
        self.registry = registry or ModelRegistry.load(self.config.models_file)

        self._replicate = replicate_service
        self._gemini = gemini_service

        self.outpainting = outpainting_service or OutpaintingService(
            settings=self.config.outpaint,
            canvas_size=self.config.canvas_size,
        )
        self.cropping = cropping_service or CroppingService(
            download_timeout=self.config.download_timeout,
        )
        self.sessions = session_store or SessionStore(ttl_seconds=self.config.session_ttl_seconds)

    @property
    def replicate(self) -> ReplicateService:
        if self._replicate is None:
            self._replicate = ReplicateService(
                api_token=self.config.replicate_api_token,
                timeout=self.config.generation_timeout,
            )
        return self._replicate

    @property
    def gemini(self) -> GeminiService:
        if self._gemini is None:
            self._gemini = GeminiService(
                api_key=self.config.gemini_api_key,
                model=self.config.text_model,
                timeout=self.config.text_timeout,
            )
        return self._gemini

    # ------------------------------------------------------------------
    # Model selection and prompt evolution
    # ------------------------------------------------------------------

    def select_model(self, request: GenerationRequest) -> tuple[str, ModelProfile]:
        """
        Resolve the requested model to a profile.

        Without an explicit model, continuation tiles default to the
        outpainting model and initial tiles to the fast model.

        Returns:
            Tuple of (requested model id, resolved profile)
        """
        if request.model_name:
            requested = request.model_name
        elif request.is_continuation:
            requested = self.config.default_continuation_model
        else:
            requested = self.config.default_model

        profile = self.registry.resolve(requested, default=self.config.default_model)
        if profile.id != requested:
            logger.warning("Unknown model %r requested, using %s", requested, profile.id)
        return requested, profile

    def evolve(self, current_prompt: str, theme: Optional[str] = None) -> tuple[str, bool]:
        """
        Evolve the scene description, falling back to a templated phrase.

        Returns:
            Tuple of (evolved prompt, whether the fallback was used)
        """
        try:
            result = self.gemini.evolve_prompt(current_prompt, theme=theme)
        except PromptEvolutionError as e:
            logger.warning("Prompt evolution failed, using fallback: %s", e)
            return fallback_evolution(current_prompt), True
        return result.evolved_prompt, False

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def plan_strategies(
        self,
        profile: ModelProfile,
        is_continuation: bool,
    ) -> list[GenerationStrategy]:
        """Ordered strategies for a request; each profile/mode appears once."""
        fastest = self.registry.fastest()
        strategies: list[GenerationStrategy] = []

        if not is_continuation:
            if profile.supports_text_to_image:
                strategies.append(GenerationStrategy("initial", profile, self._run_initial))
            if fastest.id != profile.id or not strategies:
                strategies.append(GenerationStrategy("fastest_model", fastest, self._run_initial))
            return strategies

        if profile.supports_outpainting:
            strategies.append(GenerationStrategy("inpaint", profile, self._run_inpaint))
        if profile.supports_text_to_image:
            strategies.append(GenerationStrategy("fast_mode", profile, self._run_fast_mode))
        if fastest.id != profile.id or not profile.supports_text_to_image:
            strategies.append(GenerationStrategy("fastest_model", fastest, self._run_fast_mode))
        return strategies

    def run_strategies(
        self,
        context: GenerationContext,
        strategies: list[GenerationStrategy],
    ) -> tuple[Tile, list[StrategyAttempt]]:
        """
        Try strategies in order; the first success wins.

        Raises:
            GenerationFailedError: If every strategy fails
            GenerationCancelledError: If the caller cancelled meanwhile
        """
        attempts: list[StrategyAttempt] = []

        for strategy in strategies:
            context.check_cancelled()
            start_time = time.time()
            try:
                tile = strategy(context)
            except (ImageProcessingError, ModelInputError, TransientBackendError) as e:
                duration = time.time() - start_time
                logger.warning(
                    "Strategy %s with %s failed after %.2fs: %s",
                    strategy.name,
                    strategy.profile.id,
                    duration,
                    e,
                )
                attempts.append(
                    StrategyAttempt(strategy.name, strategy.profile.id, str(e), duration)
                )
                continue

            context.check_cancelled()
            attempts.append(
                StrategyAttempt(strategy.name, strategy.profile.id, None, time.time() - start_time)
            )
            return tile, attempts

        details = "; ".join(f"{a.strategy}/{a.model}: {a.error}" for a in attempts)
        raise GenerationFailedError(f"Failed to generate image ({details})", attempts=attempts)

    def _run_initial(self, context: GenerationContext, profile: ModelProfile) -> Tile:
        prompt = build_initial_prompt(context.scene)
        result = self.replicate.generate(
            profile,
            prompt,
            width=self.config.image_width,
            height=self.config.image_height,
            steps=context.request.inference_steps,
            seed=context.seed,
        )
        return Tile(
            image_url=result.image_url,
            prompt=prompt,
            model_used=profile.id,
            generation_time=result.generation_time,
            width=self.config.image_width,
            height=self.config.image_height,
            is_initial=True,
            strategy="initial",
        )

    def _run_inpaint(self, context: GenerationContext, profile: ModelProfile) -> Tile:
        data = fetch_image_bytes(
            context.request.previous_image,
            timeout=self.config.download_timeout,
        )
        setup = self.outpainting.create_setup_from_bytes(data)

        prompt = build_continuation_prompt(context.scene)
        result = self.replicate.generate(
            profile,
            prompt,
            width=self.config.image_width,
            height=self.config.image_height,
            steps=context.request.inference_steps,
            image=setup.canvas_data_url(),
            mask=setup.mask_data_url(),
            seed=context.seed,
        )

        # A result delivered after cancellation must not be cropped or returned
        context.check_cancelled()

        image_url, height = self.cropping.crop_tile_reference(result.image_url, setup.spec)

        return Tile(
            image_url=image_url,
            prompt=prompt,
            model_used=profile.id,
            generation_time=result.generation_time,
            width=self.config.image_width,
            height=height or self.config.image_height,
            slice_spec=setup.spec,
            strategy="inpaint",
        )

    def _run_fast_mode(self, context: GenerationContext, profile: ModelProfile) -> Tile:
        prompt = add_contextual_cues(context.scene, context.theme)
        result = self.replicate.generate(
            profile,
            prompt,
            width=self.config.image_width,
            height=self.config.image_height,
            steps=context.request.inference_steps,
            seed=context.seed,
        )
        return Tile(
            image_url=result.image_url,
            prompt=prompt,
            model_used=profile.id,
            generation_time=result.generation_time,
            width=self.config.image_width,
            height=self.config.image_height,
            strategy="fast_mode",
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def generate(
        self,
        request: GenerationRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationOutcome:
        """
        Produce the next tile of a scroll.

        Args:
            request: Tile request
            cancel_event: Set by the caller to abandon the request

        Returns:
            GenerationOutcome with the tile and bookkeeping

        Raises:
            GenerationFailedError: If every strategy fails
            GenerationCancelledError: If ``cancel_event`` was set
        """
        start_time = time.time()
        requested_model, profile = self.select_model(request)
        session = self.sessions.get(request.session_id)
        seed = request.seed if request.seed is not None else random.randrange(MAX_SEED)

        current_prompt = (request.current_prompt or "").strip()
        evolved_prompt: Optional[str] = None
        fallback_used = False

        if not request.is_continuation:
            # A tile without predecessor starts a new scroll for the session
            session.reset()
            session.remember_theme(request.original_user_prompt or current_prompt)
            theme = session.original_user_theme
            scene = current_prompt or theme or DEFAULT_SCENE
            logger.info("Generating initial tile with %s", profile.id)
        else:
            # The stored theme wins; the request only seeds a session without one
            session.remember_theme(request.original_user_prompt)
            theme = session.original_user_theme
            current = current_prompt or session.evolved_prompt or theme or DEFAULT_SCENE

            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelledError("Request was cancelled by the caller")

            evolved_prompt, fallback_used = self.evolve(current, theme)
            scene = evolved_prompt
            logger.info("Generating continuation tile with %s", profile.id)

        context = GenerationContext(
            request=request,
            scene=scene,
            theme=theme,
            seed=seed,
            cancel_event=cancel_event,
        )
        strategies = self.plan_strategies(profile, request.is_continuation)
        tile, attempts = self.run_strategies(context, strategies)

        session.record(scene)

        if tile.model_used != requested_model:
            logger.info("Requested %s, tile produced by %s", requested_model, tile.model_used)

        used_profile = self.registry.get(tile.model_used)
        return GenerationOutcome(
            tile=tile,
            requested_model=requested_model,
            evolved_prompt=evolved_prompt,
            original_user_prompt=theme,
            prompt_fallback_used=fallback_used,
            seed=seed,
            total_time=time.time() - start_time,
            attempts=attempts,
            model_config=used_profile.model_dump() if used_profile else None,
        )

    def reset_session(self, session_id: Optional[str] = None) -> bool:
        """Forget the theme and prompt history of a session."""
        return self.sessions.reset(session_id)

    def available_models(self) -> list[ModelProfile]:
        return self.registry.profiles()
