import sys

from nvidia_gpu_exporter._cli import main

sys.exit(main())
