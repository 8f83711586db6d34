"""OpenCV filters for photographed and scanned time sheets.

Each filter takes a BGR or grayscale ``uint8`` image and returns a new
image; none of them modify their input in place.
"""

import cv2
import numpy as np

from src.utils.logger import get_logger

logger = get_logger(__name__)


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert an image to grayscale if it has color channels."""
    if len(image.shape) == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


def denoise(image: np.ndarray, method: str = "bilateral") -> np.ndarray:
    """Reduce sensor and paper noise.

    Args:
        image: Input image.
        method: ``"bilateral"`` keeps stroke edges sharp; ``"gaussian"``
            is faster.

    Raises:
        ValueError: If an unsupported method is specified.
    """
    if method == "gaussian":
        return cv2.GaussianBlur(image, (5, 5), 0)
    if method == "bilateral":
        return cv2.bilateralFilter(image, 9, 75, 75)
    raise ValueError(f"Unsupported denoise method: {method}")


def sharpen(image: np.ndarray, amount: float = 1.5, sigma: float = 3.0) -> np.ndarray:
    """Unsharp masking to crisp up blurred handwriting and print."""
    blurred = cv2.GaussianBlur(image, (0, 0), sigma)
    return cv2.addWeighted(image, amount, blurred, 1.0 - amount, 0)


def enhance_contrast(image: np.ndarray, clip_limit: float = 2.0, tile_size: int = 8) -> np.ndarray:
    """CLAHE contrast enhancement. Returns a grayscale image."""
    clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(tile_size, tile_size))
    return clahe.apply(to_gray(image))


def remove_background(image: np.ndarray, kernel_size: int = 7, blur_size: int = 21) -> np.ndarray:
    """Flatten uneven lighting and paper texture behind the text.

    Estimates the background by dilating away dark strokes and median
    blurring, then keeps only the difference from it.

    Returns:
        Grayscale image with a near-white background.
    """
    gray = to_gray(image)
    background = cv2.medianBlur(cv2.dilate(gray, np.ones((kernel_size, kernel_size), np.uint8)), blur_size)
    diff = 255 - cv2.absdiff(gray, background)
    return cv2.normalize(diff, None, 0, 255, cv2.NORM_MINMAX, cv2.CV_8U)


def detect_skew_angle(image: np.ndarray) -> float:
    """Median angle of long straight lines, in degrees (0.0 if none)."""
    edges = cv2.Canny(to_gray(image), 50, 150, apertureSize=3)
    lines = cv2.HoughLinesP(edges, 1, np.pi / 180, 100, minLineLength=100, maxLineGap=10)
    if lines is None:
        return 0.0
    angles = [np.arctan2(y2 - y1, x2 - x1) * 180 / np.pi for x1, y1, x2, y2 in lines.reshape(-1, 4)]
    return float(np.median(angles))


def _order_corners(points: np.ndarray) -> np.ndarray:
    """Order four points as top-left, top-right, bottom-right, bottom-left."""
    sums = points.sum(axis=1)
    diffs = np.diff(points, axis=1).ravel()
    return np.array(
        [
            points[np.argmin(sums)],
            points[np.argmin(diffs)],
            points[np.argmax(sums)],
            points[np.argmax(diffs)],
        ],
        dtype=np.float32,
    )


def find_page_corners(image: np.ndarray, min_area_ratio: float = 0.2) -> np.ndarray | None:
    """Corners of the largest four-sided contour covering enough of the frame."""
    gray = cv2.GaussianBlur(to_gray(image), (5, 5), 0)
    edges = cv2.Canny(gray, 50, 150)
    contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    min_area = image.shape[0] * image.shape[1] * min_area_ratio

    for contour in sorted(contours, key=cv2.contourArea, reverse=True)[:5]:
        if cv2.contourArea(contour) < min_area:
            break
        approx = cv2.approxPolyDP(contour, 0.02 * cv2.arcLength(contour, True), True)
        if len(approx) == 4:
            return _order_corners(approx.reshape(4, 2).astype(np.float32))
    return None


def correct_perspective(image: np.ndarray, angle_threshold: float = 0.5) -> np.ndarray:
    """Flatten a photographed page, or at least deskew a scanned one.

    If the page outline is found it is warped to a rectangle; otherwise
    the image is rotated by its dominant line angle.
    """
    corners = find_page_corners(image)
    if corners is not None:
        tl, tr, br, bl = corners
        width = int(max(np.linalg.norm(br - bl), np.linalg.norm(tr - tl)))
        height = int(max(np.linalg.norm(tr - br), np.linalg.norm(tl - bl)))
        target = np.array(
            [[0, 0], [width - 1, 0], [width - 1, height - 1], [0, height - 1]],
            dtype=np.float32,
        )
        matrix = cv2.getPerspectiveTransform(corners, target)
        logger.debug("Warped page outline to %dx%d", width, height)
        return cv2.warpPerspective(image, matrix, (width, height))

    angle = detect_skew_angle(image)
    if abs(angle) < angle_threshold:
        return image.copy()

    h, w = image.shape[:2]
    rotation = cv2.getRotationMatrix2D((w // 2, h // 2), angle, 1.0)
    logger.debug("Deskewed by %.2f degrees", angle)
    return cv2.warpAffine(
        image, rotation, (w, h), flags=cv2.INTER_CUBIC, borderMode=cv2.BORDER_REPLICATE
    )
