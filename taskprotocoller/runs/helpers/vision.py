"""Scoring of the D-15 colour arrangement test."""

D15_CAP_COUNT = 15

# Steps larger than this between consecutive caps count as a major crossing.
MAJOR_CROSSING_STEP = 2


def score_d15_arrangement(result_indices) -> dict:
    """
    Score a D-15 arrangement.

    *result_indices* is the cap sequence as placed by the participant,
    starting with the reference cap 0 and containing each of caps 1..15 once.
    Raises ValueError for anything else.

    ``total_error_score`` sums the index distance between consecutive caps;
    a perfect arrangement scores 15. More than one major crossing indicates a
    colour vision deficiency.
    """
    try:
        sequence = [int(i) for i in result_indices]
    except (TypeError, ValueError) as exc:
        raise ValueError("D-15 result must be a list of cap numbers") from exc
    if not sequence or sequence[0] != 0:
        raise ValueError("D-15 result must start with the reference cap 0")
    if sorted(sequence) != list(range(D15_CAP_COUNT + 1)):
        raise ValueError(f"D-15 result must contain caps 0..{D15_CAP_COUNT} exactly once")

    steps = [abs(b - a) for a, b in zip(sequence, sequence[1:])]
    crossings = sum(1 for step in steps if step > MAJOR_CROSSING_STEP)
    return {
        "sequence": sequence,
        "major_crossings": crossings,
        "total_error_score": sum(steps),
        "is_normal": crossings <= 1,
    }
