"""
Peak heap estimation for the executed program.

A small Java launcher is compiled next to the submission. It records the
used heap before handing control to the target's `main`, samples it on a
fixed interval from a daemon scheduler, and on JVM shutdown stops the
sampler, takes one last reading and writes `peak - baseline` (bytes) to
REPORT_FILE. Sampling only reads Runtime counters.

The number is an estimate: GC timing and the sampling interval both shift
it, so treat it as accurate to roughly one young-generation collection.
"""

from pathlib import Path

from dispatcher import config
from dispatcher.utils import logger

PROBE_CLASS = '__SandboxProbe'
PROBE_SOURCE_FILE = f'{PROBE_CLASS}.java'
REPORT_FILE = '.peak-memory'

PROBE_SOURCE = '''\
import java.lang.reflect.InvocationTargetException;
import java.lang.reflect.Method;
import java.nio.charset.StandardCharsets;
import java.nio.file.Files;
import java.nio.file.Paths;
import java.util.Arrays;
import java.util.concurrent.Executors;
import java.util.concurrent.ScheduledExecutorService;
import java.util.concurrent.TimeUnit;
import java.util.concurrent.atomic.AtomicLong;

public final class __SandboxProbe {

    private static final AtomicLong PEAK = new AtomicLong();

    private static long usedHeap() {
        Runtime rt = Runtime.getRuntime();
        return rt.totalMemory() - rt.freeMemory();
    }

    public static void main(String[] args) throws Throwable {
        final String target = args[0];
        final String report = args[1];
        final long intervalMs = Long.parseLong(args[2]);
        final long baseline = usedHeap();
        PEAK.set(baseline);

        final ScheduledExecutorService sampler =
            Executors.newSingleThreadScheduledExecutor(r -> {
                Thread t = new Thread(r, "sandbox-memory-sampler");
                t.setDaemon(true);
                return t;
            });
        sampler.scheduleAtFixedRate(
            () -> PEAK.accumulateAndGet(usedHeap(), Math::max),
            intervalMs, intervalMs, TimeUnit.MILLISECONDS);

        Runtime.getRuntime().addShutdownHook(new Thread(() -> {
            sampler.shutdownNow();
            PEAK.accumulateAndGet(usedHeap(), Math::max);
            long delta = Math.max(0L, PEAK.get() - baseline);
            try {
                Files.write(Paths.get(report),
                    Long.toString(delta).getBytes(StandardCharsets.US_ASCII));
            } catch (Exception ignored) {
            }
        }));

        Method main = Class.forName(target).getMethod("main", String[].class);
        try {
            main.invoke(null, (Object) new String[0]);
        } catch (InvocationTargetException e) {
            Throwable cause = e.getCause();
            cause.setStackTrace(trimLauncherFrames(cause.getStackTrace()));
            throw cause;
        }
    }

    private static StackTraceElement[] trimLauncherFrames(StackTraceElement[] trace) {
        int end = trace.length;
        while (end > 0 && isLauncherFrame(trace[end - 1])) {
            end--;
        }
        return Arrays.copyOf(trace, end);
    }

    private static boolean isLauncherFrame(StackTraceElement frame) {
        String cls = frame.getClassName();
        return cls.equals(__SandboxProbe.class.getName())
            || cls.startsWith("java.lang.reflect.")
            || cls.startsWith("jdk.internal.reflect.")
            || cls.startsWith("sun.reflect.");
    }
}
'''


def read_peak_memory(
    working_dir: Path,
    max_bytes: int | None = None,
    placeholder: int | None = None,
) -> int:
    """Return the probe's reading, or the placeholder when it is unusable."""
    placeholder = placeholder if placeholder is not None else config.PLACEHOLDER_MEMORY_BYTES
    max_bytes = max_bytes or config.MAX_HEAP_MB * 1024 * 1024
    report = Path(working_dir) / REPORT_FILE
    try:
        value = int(report.read_text(encoding='ascii').strip())
    except FileNotFoundError:
        logger().debug(f'no memory report in {working_dir}')
        return placeholder
    except (OSError, ValueError) as exc:
        logger().debug(f'unreadable memory report in {working_dir}: {exc}')
        return placeholder
    if value < 0 or value > max_bytes:
        logger().debug(f'memory report out of range: {value}')
        return placeholder
    return value
