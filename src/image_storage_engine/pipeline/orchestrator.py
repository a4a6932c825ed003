"""Per-upload orchestration: one source stream, N transform -> upload pipelines."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..core.filename_utils import (
    build_object_key,
    extension_of,
    join_url,
    with_extension,
    with_suffix,
)
from ..core.models import (
    PipelineTask,
    StorageOptions,
    StoredFile,
    UploadedFile,
    UploadResult,
    VariantSpec,
)
from ..core.naming import NameGenerator
from ..core.observability import LogContext, StructuredLogger
from ..core.protocols import LoggerProtocol, S3ClientProtocol, TransformFactoryProtocol
from .planner import VariantPlanner
from .registry import InFlightRegistry
from .tee import StreamTee
from .transform import TransformFactory
from .upload import UploadAborted, UploadGateway, UploadHandle, unquote_etag

WEBP_EXTENSION = "webp"


@dataclass
class UploadSession:
    """State of one ``handle`` call; used exactly once."""

    original_identity: str
    base_name: str
    log_context: LogContext
    tasks: List[PipelineTask] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)


class UploadOrchestrator:
    """
    Stores every configured variant of an upload and reports where they went.

    ``handle`` tees the upload stream into one transform -> upload pipeline
    per variant (plus one per WebP alternate), waits for all of them and
    returns the results in dispatch order. Keys are recorded in the
    ``InFlightRegistry`` while the upload runs; a failed upload keeps its
    entry so ``remove`` can delete whatever was written.
    """

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        options: StorageOptions,
        registry: Optional[InFlightRegistry] = None,
        name_generator: Optional[NameGenerator] = None,
        transform_factory: Optional[TransformFactoryProtocol] = None,
        upload_gateway: Optional[UploadGateway] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._s3_client = s3_client
        self._options = options
        self._registry = registry if registry is not None else InFlightRegistry()
        self._name_generator = name_generator or NameGenerator()
        self._transform_factory = transform_factory or TransformFactory()
        self._upload_gateway = upload_gateway or UploadGateway(
            part_size=options.part_size, max_buffer=options.tap_buffer
        )
        self._logger = logger or StructuredLogger("image-storage-engine.orchestrator")

    @property
    def options(self) -> StorageOptions:
        return self._options

    @property
    def registry(self) -> InFlightRegistry:
        return self._registry

    async def handle(self, file: UploadedFile) -> UploadResult:
        """
        Run one upload session.

        Returns:
            UploadResult listing every stored variant, web alternates right
            after the variant they derive from

        Raises:
            NameGenerationError: Before anything is registered or uploaded
            TransformError: For bad resize arguments or an unreadable image
            StoreError: For the first failed upload
        """
        identity = file.originalname
        context = LogContext(
            correlation_id=f"upload_{identity}_{int(time.time() * 1000)}",
            component="upload_orchestrator",
        ).with_metadata(original_name=identity)

        # Planning
        base_name = await self._name_generator.generate(
            extension_of(identity) if identity else None
        )
        session = UploadSession(
            original_identity=identity,
            base_name=base_name,
            log_context=context.with_metadata(base_name=base_name),
        )
        await self._registry.register(identity)
        plan = VariantPlanner.expand(self._options)

        tap_count = len(plan) + sum(1 for variant in plan if variant.produces_web_alternate)
        self._logger.debug(
            f"Planned {tap_count} pipeline(s)", session.log_context.with_operation("plan")
        )
        tee = (
            StreamTee(file.stream, tap_count, max_buffer=self._options.tap_buffer)
            if tap_count
            else None
        )

        try:
            # Dispatching
            for variant in plan:
                filename = with_suffix(base_name, variant.label)
                await self._dispatch(session, tee, variant, filename, webp=False)

                if variant.produces_web_alternate:
                    webp_filename = with_suffix(
                        with_extension(base_name, WEBP_EXTENSION), variant.label
                    )
                    await self._dispatch(session, tee, variant, webp_filename, webp=True)

            # AwaitingCompletion
            stored = await asyncio.gather(*(task.completion for task in session.tasks))
        except BaseException as exc:
            await self._abort(session, tee)
            self._logger.error(
                f"Upload failed: {exc}",
                session.log_context.with_operation("handle"),
                dispatched=len(session.tasks),
            )
            raise

        result = UploadResult(files=self._build_files(session, stored))
        await self._registry.discard(identity)

        self._logger.info(
            f"Stored {len(result.files)} file(s)",
            session.log_context.with_operation("handle"),
            processing_time_ms=round((time.time() - session.start_time) * 1000, 2),
        )
        return result

    async def _dispatch(
        self,
        session: UploadSession,
        tee: StreamTee,
        variant: VariantSpec,
        filename: str,
        webp: bool,
    ) -> PipelineTask:
        key = build_object_key(self._options.s3_path, filename)
        await self._registry.append(session.original_identity, key)

        stage = self._transform_factory.create_stream(self._options, variant, webp=webp)
        handle = self._upload_gateway.begin_upload(
            self._s3_client,
            {"Bucket": self._options.bucket, "Key": key, "ACL": self._options.acl},
        )
        tap = tee.tap(len(session.tasks))
        task = PipelineTask(
            destination_key=key,
            filename=filename,
            variant_label=variant.variant_label,
            completion=asyncio.create_task(self._run_pipeline(tap, stage, handle)),
        )
        session.tasks.append(task)

        self._logger.debug(
            f"Dispatched {filename}",
            session.log_context.with_operation("dispatch"),
            key=key,
            variant=task.variant_label,
            webp=webp,
        )
        return task

    async def _run_pipeline(self, tap: Any, stage: Any, handle: UploadHandle) -> Dict[str, Any]:
        try:
            try:
                async for chunk in stage.transform(tap):
                    await handle.write_stream.write(chunk)
                await handle.write_stream.close()
            except UploadAborted:
                # the upload failed first; its completion raises the cause
                pass
            except BaseException as exc:
                handle.write_stream.abort(exc)
                raise
            return await handle.completion
        finally:
            if not handle.completion.done():
                handle.completion.cancel()
            await asyncio.gather(handle.completion, return_exceptions=True)

    async def _abort(self, session: UploadSession, tee: Optional[StreamTee]) -> None:
        pending = [task.completion for task in session.tasks if not task.completion.done()]
        for completion in pending:
            completion.cancel()
        await asyncio.gather(
            *(task.completion for task in session.tasks), return_exceptions=True
        )
        if tee is not None:
            await tee.aclose()

    def _build_files(
        self, session: UploadSession, stored: List[Dict[str, Any]]
    ) -> List[StoredFile]:
        files = []
        for task, data in zip(session.tasks, stored):
            if self._options.cdn:
                # Every variant reports the primary file's name behind the CDN.
                url = join_url(self._options.cdn, self._options.s3_path, session.base_name)
            else:
                url = data["Location"]
            files.append(
                StoredFile(
                    name=task.filename,
                    variant_label=task.variant_label,
                    url=url,
                    content_hash=unquote_etag(data["ETag"]),
                )
            )
        return files

    async def remove(self, identity: str) -> Union[bool, List[Dict[str, Any]]]:
        """
        Delete every object still registered for ``identity``.

        Returns:
            True when nothing is registered, otherwise the delete responses
            in registration order

        Raises:
            StoreError: The first failed delete, after all deletes finished
        """
        keys = await self._registry.take(identity)
        if keys is None:
            return True

        context = LogContext(component="upload_orchestrator").with_metadata(
            original_name=identity
        )
        self._logger.info(
            f"Removing {len(keys)} object(s)", context.with_operation("remove"), keys=keys
        )
        results = await asyncio.gather(
            *(
                self._upload_gateway.remove(
                    self._s3_client, {"Bucket": self._options.bucket, "Key": key}
                )
                for key in keys
            ),
            return_exceptions=True,
        )
        for outcome in results:
            if isinstance(outcome, BaseException):
                self._logger.error(
                    f"Remove failed: {outcome}", context.with_operation("remove")
                )
                raise outcome
        return list(results)
