"""Token counting for budget checks."""

from .encoder import (  # noqa: F401
    ENCODING_CL100K,
    ENCODING_O200K,
    TokenCounter,
    TokenEncoder,
    encoder_for_model,
    encoding_name_for_model,
    get_token_encoder,
)
