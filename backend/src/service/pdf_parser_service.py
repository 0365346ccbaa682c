import io

from pypdf import PdfReader


def sanitize_manuscript_text(text: str) -> str:
    """
    清理提取出的文本：
    - NULL 字符 (\u0000)
    - 回车 (\r)
    然后去掉首尾空白（含开头的 BOM）。
    """
    if not text:
        return ""
    return text.replace("\u0000", "").replace("\r", "").strip().lstrip("\ufeff").strip()


def extract_pdf_text(data: bytes) -> str:
    """
    从 PDF 字节中提取纯文本（逐页拼接）。

    阻塞调用，异步代码里请放到线程中执行。
    """
    reader = PdfReader(io.BytesIO(data))
    return "\n".join([page.extract_text() or "" for page in reader.pages])
