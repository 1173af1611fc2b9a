"""
进度显示模块。

提供下载进度条和后台旋转指示器。
"""

import sys
import threading
from typing import Optional, TextIO

SPINNER_FRAMES = ["|", "/", "-", "\\"]
BAR_WIDTH = 40


def render_progress_bar(bytes_read: int, total: int, width: int = BAR_WIDTH) -> str:
    """
    渲染下载进度条文本。

    总大小未知（total <= 0）时退化为按已读字节数轮换的旋转指示器。

    参数:
        bytes_read: 已读取字节数
        total: 总字节数，未知时为非正数
        width: 进度条宽度

    返回:
        不含换行的进度条字符串（以回车开头）
    """
    if total <= 0:
        frame = SPINNER_FRAMES[(bytes_read // 1024) % len(SPINNER_FRAMES)]
        return f"\r{frame} Downloading... "

    ratio = min(bytes_read / total, 1.0)
    completed = int(ratio * width)

    cells = []
    for i in range(width):
        if i < completed:
            cells.append("=")
        elif i == completed:
            cells.append(">")
        else:
            cells.append(" ")

    read_mb = bytes_read / 1024 / 1024
    total_mb = total / 1024 / 1024
    return f"\r[{''.join(cells)}] {read_mb:.1f}/{total_mb:.1f}MB ({ratio * 100:.1f}%)"


def print_progress(bytes_read: int, total: int, stream: Optional[TextIO] = None) -> None:
    """
    将进度条输出到终端。

    参数:
        bytes_read: 已读取字节数
        total: 总字节数
        stream: 输出流，默认为 stdout
    """
    out = stream or sys.stdout
    out.write(render_progress_bar(bytes_read, total))
    out.flush()


class Spinner:
    """
    终端旋转指示器。

    在后台线程中绘制动画，通过 stop() 发出完成信号后线程退出。
    动画与主操作的结果无关，可在任意时刻停止。
    """

    def __init__(self, message: str, stream: Optional[TextIO] = None, interval: float = 0.1):
        """
        初始化旋转指示器。

        参数:
            message: 指示器后显示的文字
            stream: 输出流，默认为 stdout
            interval: 帧间隔（秒）
        """
        self.message = message
        self.stream = stream or sys.stdout
        self.interval = interval
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.frames_drawn = 0

    def _run(self) -> None:
        index = 0
        while not self._done.is_set():
            frame = SPINNER_FRAMES[index % len(SPINNER_FRAMES)]
            self.stream.write(f"\r{frame} {self.message}")
            self.stream.flush()
            self.frames_drawn += 1
            index += 1
            self._done.wait(self.interval)

    def start(self) -> "Spinner":
        """启动后台动画线程。"""
        if self._thread is not None:
            return self
        self._done.clear()
        self._thread = threading.Thread(target=self._run, name="node-spark-spinner", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        """发出完成信号并等待动画线程退出。"""
        if self._thread is None:
            return
        self._done.set()
        self._thread.join()
        self._thread = None
        self.stream.write("\r" + " " * (len(self.message) + 2) + "\r")
        self.stream.flush()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def __enter__(self) -> "Spinner":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
