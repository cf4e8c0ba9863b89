import numpy as np

PAD = 0x00          # leading byte of every token stream, never interpreted
RUN_EXT = 0xFF      # run-count continuation byte (+255)
RUN_BIAS = 2        # a run token covers count + 2 pixels


def rle_decode(data, N: int):
    """
    Input: GRLE token stream (starting with the pad byte)
    Output: (uint8 array of length N, number of pixels actually decoded)

    Token rule: a pair of equal bytes starts a run (0xFF continuation bytes,
    then one remainder byte, +2). Otherwise the first byte is a literal and
    the second one is re-read as the start of the next token.
    Short streams are zero-padded up to N.
    """
    out = np.zeros(N, dtype=np.uint8)
    n = len(data)
    pos = 0
    i = 1  # skip pad byte
    while i + 1 < n and pos < N:
        prev = data[i]
        nxt = data[i + 1]
        i += 2
        if prev == nxt:
            count = 0
            while i < n and data[i] == RUN_EXT:
                count += 255
                i += 1
            if i < n:
                count += data[i]
                i += 1
            count += RUN_BIAS
            take = min(count, N - pos)
            out[pos:pos + take] = nxt
            pos += take
        else:
            out[pos] = prev
            pos += 1
            i -= 1
    if pos < N and i == n - 1:
        # trailing literal: no partner byte left to pair with. The pair loop
        # alone would zero-fill this pixel and rle_encode output would not
        # decode back to its input.
        out[pos] = data[i]
        pos += 1
    return out, pos


def _runs(pixels: np.ndarray):
    """(start, length) of maximal runs of identical values."""
    p = np.asarray(pixels).ravel()
    if p.size == 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)
    starts = np.concatenate([[0], np.flatnonzero(p[1:] != p[:-1]) + 1])
    lengths = np.diff(np.concatenate([starts, [p.size]]))
    return starts, lengths


def rle_encode(pixels: np.ndarray) -> bytes:
    """
    Input: flat uint8 pixel sequence
    Output: GRLE token stream, pad byte included
    """
    p = np.asarray(pixels, dtype=np.uint8).ravel()
    out = bytearray([PAD])
    starts, lengths = _runs(p)
    for s, L in zip(starts.tolist(), lengths.tolist()):
        v = int(p[s])
        if L >= 2:
            out.append(v)
            out.append(v)
            remaining = L - RUN_BIAS
            while remaining >= 255:
                out.append(RUN_EXT)
                remaining -= 255
            out.append(remaining)
        else:
            out.append(v)
    # a lone literal would never be reached by the decoder (it needs a pair)
    if len(out) == 2:
        out.append(out[1])
        out.append(0x00)
    return bytes(out)
