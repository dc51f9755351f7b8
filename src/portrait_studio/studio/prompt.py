from __future__ import annotations

from .models import StyleDescription

STYLE_ANALYSIS_INSTRUCTION = (
    "Bạn là một chuyên gia phân tích thời trang và bối cảnh. Hãy phân tích hình ảnh được cung cấp "
    "một cách cực kỳ chi tiết. Đối với 'outfit', hãy mô tả từng món đồ, chất liệu vải (ví dụ: lụa, "
    "cotton, denim), kiểu dáng, hoa văn, màu sắc chủ đạo và các chi tiết nhỏ như cúc áo, đường may. "
    "Đối với 'background', hãy mô tả không gian, ánh sáng (ví dụ: ánh sáng tự nhiên, đèn studio), "
    "các vật thể xung quanh, tông màu chung và cảm giác mà nó mang lại (ví dụ: sang trọng, cổ điển, "
    "tự nhiên). Tuyệt đối không mô tả người. Trả về kết quả dưới dạng một đối tượng JSON với hai "
    "khóa: 'outfit' và 'background'."
)

STYLE_ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "outfit": {
            "type": "STRING",
            "description": "Mô tả chi tiết về trang phục trong ảnh.",
        },
        "background": {
            "type": "STRING",
            "description": "Mô tả chi tiết về bối cảnh, môi trường xung quanh trong ảnh.",
        },
    },
    "required": ["outfit", "background"],
}


def build_variation_prompt(style: StyleDescription, aspect_ratio: str, camera_angle: str) -> str:
    """Compose the instruction for one variation call."""
    return f"""**Nhiệm vụ: Cấy ghép kỹ thuật số - Chỉ thay đổi trang phục và bối cảnh.**

**QUY TẮC BẮT BUỘC:**
1. **GIỮ NGUYÊN 100% NGƯỜI GỐC:** Giữ lại chính xác người trong ảnh gốc: khuôn mặt, nét mặt, kiểu tóc, màu tóc, màu da, dáng người. KHÔNG ĐƯỢC THAY ĐỔI.
2. **XỬ LÝ NỀN XANH (YÊU CẦU TUYỆT ĐỐI):** Hình ảnh đầu vào có một nền màu xanh lá cây sáng (#00FF00) bao quanh. Nhiệm vụ của bạn là phải **XÓA SẠCH** và **THAY THẾ HOÀN TOÀN** 100% vùng màu xanh này bằng bối cảnh được mô tả. Đây là yêu cầu quan trọng nhất. **KHÔNG ĐƯỢC PHÉP** để lại bất kỳ pixel màu xanh nào trong ảnh kết quả. Toàn bộ khung hình phải được lấp đầy.
3. **THAY ĐỔI:** Chỉ thay đổi trang phục và bối cảnh dựa trên mô tả dưới đây.
4. **TỈ LỆ KHUNG HÌNH:** Tạo ra hình ảnh với tỉ lệ khung hình chính xác là {aspect_ratio}.
5. **GÓC CHỤP:** Chụp ảnh từ góc {camera_angle}.
6. **CHẤT LƯỢNG:** Hình ảnh phải siêu thực, chất lượng 4K, chi tiết và sắc nét.

**Mô tả chi tiết:**
- **Trang phục:** {style.outfit}
- **Bối cảnh:** {style.background}

**ĐẦU RA:** Chỉ trả về duy nhất một tệp hình ảnh. Không trả về bất kỳ văn bản nào."""
