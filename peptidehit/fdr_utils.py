# native imports
import logging

# third party imports
import numpy as np

logger = logging.getLogger()

DECOY_PROTEIN_PREFIXES = ["reversed_", "rev_", "scrambled_", "xxx_", "xxx."]
DECOY_PROTEIN_SUFFIXES = [":reversed"]


def is_decoy_protein(protein: str, extra_prefixes: list[str] | None = None) -> bool:
    """Check if a protein name denotes a reversed or scrambled decoy sequence.

    Prefixes and suffixes are matched case-insensitively.

    Parameters
    ----------

    protein : str
        The protein name as written by the search engine.

    extra_prefixes : list[str], optional
        Tool specific decoy prefixes in addition to `DECOY_PROTEIN_PREFIXES`.

    Returns
    -------
    bool
    """
    protein = protein.strip().lower()
    prefixes = DECOY_PROTEIN_PREFIXES + [p.lower() for p in (extra_prefixes or [])]
    return any(protein.startswith(prefix) for prefix in prefixes) or any(
        protein.endswith(suffix) for suffix in DECOY_PROTEIN_SUFFIXES
    )


def fdr_to_q_values(fdr_values: np.ndarray):
    """Converts FDR values to q-values.
    Takes an array of FDR values ordered from the best to the worst identification and converts them to q-values.
    for every element the lowest FDR where it would be accepted is used as q-value.

    Parameters
    ----------
    fdr_values : np.ndarray
        The FDR values to convert.

    Returns
    -------
    np.ndarray
        The q-values.
    """
    fdr_values_flipped = np.flip(fdr_values)
    q_values_flipped = np.minimum.accumulate(fdr_values_flipped)
    q_vals = np.flip(q_values_flipped)
    return q_vals


def decoy_fdr(is_decoy: np.ndarray) -> np.ndarray:
    """Running FDR of identifications ordered from the best to the worst.

    The FDR at each position is the number of decoys divided by the number of forward identifications
    accepted up to and including it, 1 as long as no forward identification was accepted. Values are capped at 1.

    Parameters
    ----------
    is_decoy : np.ndarray
        Boolean decoy label of every identification.

    Returns
    -------
    np.ndarray
        The FDR values.
    """
    is_decoy = np.asarray(is_decoy, dtype=bool)
    decoy_cumsum = np.cumsum(is_decoy)
    forward_cumsum = np.cumsum(~is_decoy)

    fdr = np.ones(len(is_decoy), dtype=np.float64)
    has_forward = forward_cumsum > 0
    fdr[has_forward] = decoy_cumsum[has_forward] / forward_cumsum[has_forward]
    return np.minimum(fdr, 1.0)
