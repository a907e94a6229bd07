# coding=utf-8
import cProfile
import os
import pstats
import tempfile

import numpy as np
import scipy.io.wavfile

from singerprint import cli

SR = 44100

workdir = tempfile.mkdtemp(prefix="singerprint-profile-")
query = os.path.join(workdir, "query.wav")
dbase = os.path.join(workdir, "fpdb.json")

# Ten seconds of noise stands in for a recording
rng = np.random.default_rng(0)
scipy.io.wavfile.write(query, SR, np.int16(rng.uniform(-0.5, 0.5, SR * 10) * 32767))
cli.main(["add", "-d", dbase, "--name", "query", query])

argv = ["match", "-d", dbase, query]

stats = os.path.join(workdir, "fpmstats")
cProfile.run('cli.main(argv)', stats)

p = pstats.Stats(stats)

p.sort_stats('time')
p.print_stats(10)
