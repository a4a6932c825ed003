"""Expansion of configured sizes into the variants of one upload."""

from typing import List

from ..core.models import ResizeOptions, StorageOptions, VariantSpec


class VariantPlanner:
    """Turns storage options into the ordered list of variants to produce."""

    @staticmethod
    def expand(options: StorageOptions) -> List[VariantSpec]:
        """
        Create one VariantSpec per configured size, in configured order.

        The global fit applies unless the size sets its own; a size produces
        a WebP alternate when either the global or its own webp flag is set.
        An empty ``sizes`` list yields an empty plan.
        """
        variants = []

        for size in options.sizes:
            resize_options = ResizeOptions(
                **{
                    **size.options.model_dump(),
                    "fit": size.options.fit or options.fit,
                }
            )
            variants.append(
                VariantSpec(
                    label=size.name,
                    width=size.width,
                    height=size.height,
                    resize_options=resize_options,
                    produces_web_alternate=options.webp or size.webp,
                )
            )

        return variants
